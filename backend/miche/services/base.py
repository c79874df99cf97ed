# backend/miche/services/base.py
"""
Base Service Pattern for Miche Mobile

Provides common functionality for all service classes including:
- Access to the storage gateway (units of work with an explicit Scope)
- Logging
- Performance monitoring
"""

from functools import wraps
import logging
import time
from typing import Any, Callable, Optional, TypeVar, cast

from ..core.enums import Scope
from ..database.gateway import StorageGateway, UnitOfWork
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Services never hold a session. Each unit of work is a callable handed to
    ``self.storage.run`` together with the scope it must run under.
    """

    def __init__(self, storage: StorageGateway):
        self.storage = storage
        self.logger = logging.getLogger(self.__class__.__name__)

    def as_caller(self, operation: str, principal_id: str, work: UnitOfWork[T]) -> T:
        """Write under the caller's authorization, falling back to the elevated path."""
        return self.storage.run(operation, work, scope=Scope.CALLER, principal_id=principal_id)

    def elevated(self, operation: str, work: UnitOfWork[T]) -> T:
        """Run on the service-level path (system actors and invariant-check reads)."""
        return self.storage.run(operation, work, scope=Scope.ELEVATED)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("reserve")
            def reserve(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                start_time = time.perf_counter()
                success = False
                error_type: Optional[str] = None
                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            setattr(wrapper, "_operation_name", operation_name)
            return cast(F, wrapper)

        return decorator
