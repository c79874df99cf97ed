# backend/miche/repositories/base_repository.py
"""
Base Repository Pattern for Miche Mobile

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Transaction support (managed by the storage gateway, never here)
- Error translation that keeps authorization rejections recognisable

Repositories only flush. The unit of work that owns the session commits or
rolls back, which lets the access-control fallback replay a whole unit of
work on a different storage path.
"""

import logging
from typing import Any, Generic, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, StorageAuthorizationError
from ..database.access_control import is_authorization_rejection

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session (owned by the caller's unit of work)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def _raise_storage_error(self, action: str, exc: SQLAlchemyError) -> NoReturn:
        """
        Re-raise a SQLAlchemy error as a repository error.

        Authorization rejections become StorageAuthorizationError so the
        fallback executor can tell them apart from every other failure.
        """
        name = self.model.__name__
        if is_authorization_rejection(exc):
            self.logger.info("Storage refused to %s %s: %s", action, name, exc)
            raise StorageAuthorizationError(f"Not authorized to {action} {name}: {exc}") from exc
        self.logger.error("Failed to %s %s: %s", action, name, exc)
        raise RepositoryException(f"Failed to {action} {name}: {exc}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self._raise_storage_error("retrieve", e)

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by the unit of work.
        """
        entity = self.model(**kwargs)
        try:
            self.db.add(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise_storage_error("create", e)
        return entity

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Update only the provided fields of an existing entity."""
        entity = self.get_by_id(id)
        if entity is None:
            return None
        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        self.flush()
        return entity

    def delete(self, id: str) -> bool:
        """Delete an entity by primary key. Returns False if it does not exist."""
        entity = self.get_by_id(id)
        if entity is None:
            return False
        try:
            self.db.delete(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise_storage_error("delete", e)
        return True

    def flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise_storage_error("save", e)

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self._raise_storage_error("find", e)
