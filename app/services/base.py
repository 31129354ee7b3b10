"""
Base Service Classes and Utilities

This module provides the foundation for all service layer implementations including
base classes, error kinds, result types, and common service patterns.
"""

import logging
from typing import Any, Dict, Optional, Generic, TypeVar, Callable
from datetime import datetime
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from functools import wraps

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorKind(Enum):
    """Discriminates the failure branch of a ServiceResult."""
    VALIDATION_FAILED = "validation_failed"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "SERVICE_ERROR"
        self.details = details or {}
        self.timestamp = datetime.utcnow()


class ValidationError(ServiceError):
    """Malformed or missing input."""

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, field: str = None, value: Any = None):
        super().__init__(message, "VALIDATION_ERROR", {"field": field, "value": value})
        self.field = field
        self.value = value


class NotFoundError(ServiceError):
    """Resource not found error."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource_type: str, identifier: Any, error_code: str = "NOT_FOUND"):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, error_code, {"resource_type": resource_type, "identifier": identifier})


class GroupDismissedError(NotFoundError):
    """The group exists but has already been dismissed."""

    def __init__(self, group_id: int):
        super().__init__("Group", group_id, "ALREADY_DISMISSED")
        self.message = f"Group already dismissed: {group_id}"


class ConflictError(ServiceError):
    """Request conflicts with the current state of a resource."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, conflicting_resource: str = None):
        super().__init__(message, "CONFLICT", {"conflicting_resource": conflicting_resource})


class AuthorizationError(ServiceError):
    """Caller lacks the owner or member privilege."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str, required_permission: str = None):
        super().__init__(message, "AUTHORIZATION_ERROR", {"required_permission": required_permission})


@dataclass
class ServiceResult(Generic[T]):
    """Standard result type for service operations."""
    success: bool
    data: Optional[T] = None
    error: Optional[ServiceError] = None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind of a failed result, None on success."""
        return self.error.kind if self.error is not None else None

    @classmethod
    def success_result(cls, data: T) -> 'ServiceResult[T]':
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def error_result(cls, error: ServiceError) -> 'ServiceResult[T]':
        """Create an error result."""
        return cls(success=False, error=error)


def service_method(func: Callable) -> Callable:
    """
    Decorator for service methods with logging and error conversion.

    A raised ServiceError becomes an error result. Anything else is logged
    and re-raised unchanged: infrastructure failures are not business outcomes.
    """

    def _log_outcome(method_name, result):
        if isinstance(result, ServiceResult):
            if result.success:
                logger.info(f"[{method_name}] Operation completed successfully")
            else:
                logger.warning(f"[{method_name}] Operation failed: {result.error.message}")
        else:
            logger.info(f"[{method_name}] Operation completed")

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        method_name = f"{self.__class__.__name__}.{func.__name__}"
        logger.debug(f"[{method_name}] Starting operation")

        try:
            if hasattr(self, '_validate_service_state'):
                self._validate_service_state()

            result = func(self, *args, **kwargs)
            _log_outcome(method_name, result)
            return result

        except ServiceError as e:
            logger.warning(f"[{method_name}] Service error: {e.message}")
            return ServiceResult.error_result(e)
        except Exception as e:
            logger.exception(f"[{method_name}] Unexpected error: {e}")
            raise

    return wrapper


class BaseService(ABC):
    """Abstract base class for all services."""

    def __init__(self, name: str = None):
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(f"services.{self.name}")
        self._initialized = False
        self._configuration = {}

    def initialize(self, config: Dict[str, Any] = None) -> None:
        """Initialize the service with configuration."""
        self._configuration = config or {}
        self._initialized = True
        self.logger.debug(f"Service {self.name} initialized")

    def _validate_service_state(self) -> None:
        """Validate that the service is properly initialized."""
        if not self._initialized:
            raise ServiceError(f"Service {self.name} not initialized", "SERVICE_NOT_INITIALIZED")

    @property
    def config(self) -> Dict[str, Any]:
        """Get service configuration."""
        return self._configuration

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._configuration.get(key, default)
