# backend/miche/routes/v1/services.py
"""
Service catalog routes - API v1

Endpoints:
    POST "" - Add a service to the authenticated professional's catalog
    PATCH /{service_id} - Edit a service (a price edit rotates the external price)
"""

import asyncio

from fastapi import APIRouter, Depends, Path, status

from ...api.dependencies import UserPrincipal, get_catalog_service, get_current_principal
from ...schemas.catalog import ServiceCreate, ServiceOut, ServiceUpdate
from ...services.catalog_service import CatalogService

router = APIRouter(tags=["services-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    current_user: UserPrincipal = Depends(get_current_principal),
    catalog_service: CatalogService = Depends(get_catalog_service),
) -> ServiceOut:
    service = await asyncio.to_thread(
        lambda: catalog_service.create_service(
            current_user.id,
            name=payload.name,
            price=payload.price,
            duration_minutes=payload.duration_minutes,
            description=payload.description,
        )
    )
    return ServiceOut.model_validate(service)


@router.patch("/{service_id}", response_model=ServiceOut)
async def update_service(
    payload: ServiceUpdate,
    service_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    current_user: UserPrincipal = Depends(get_current_principal),
    catalog_service: CatalogService = Depends(get_catalog_service),
) -> ServiceOut:
    changes = payload.model_dump(exclude_unset=True)
    service = await asyncio.to_thread(
        lambda: catalog_service.update_service(current_user.id, service_id, **changes)
    )
    return ServiceOut.model_validate(service)
