"""
Base Service Interface

Every engine service (data providers, the indicator service) implements
this contract, and every engine error derives from ServiceError so callers
can catch one type and still see which service raised it.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseService(ABC, Generic[InputT, OutputT]):
    """
    Base class for engine services.

    Each service:
    - Accepts a single request model (InputT)
    - Returns a single result model (OutputT)
    - Reports its health
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name used in logs and error messages."""
        pass

    @abstractmethod
    async def execute(self, input_data: InputT) -> OutputT:
        """
        Run the service for one request.

        Args:
            input_data: Request model, already validated by pydantic

        Returns:
            Result model for the request

        Raises:
            ServiceError: If the request cannot be served
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if service is healthy and can process requests."""
        pass


# =============================================================================
# ERRORS
# =============================================================================


class ServiceError(Exception):
    """Base exception for engine errors."""

    def __init__(self, service_name: str, message: str, details: Optional[dict] = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class ValidationError(ServiceError):
    """Rejected request: bad parameters, duplicate labels and the like."""
    pass


class InvalidInputError(ValidationError):
    """Malformed candle; the indicator instance is left unchanged."""
    pass


class UnknownIndicatorError(ValidationError):
    """Indicator key is not in the registry."""
    pass


class UnknownCategoryError(ValidationError):
    """Catalog category filter is not a known category."""
    pass


class DataUnavailableError(ServiceError):
    """Data provider could not supply the requested candles."""
    pass
