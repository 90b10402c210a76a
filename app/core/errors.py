"""
Standardized error classification for the CRM core.

Every error raised by entity resolution, entity creation and the news
pipeline derives from CRMError. Each error type indicates whether the
operation may be retried and carries the HTTP status the API layer maps
it to.
"""

from typing import Optional, Dict, Any


class CRMError(Exception):
    """
    Base exception for all CRM core errors.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code the API layer responds with
        retryable: Whether the scheduler may retry the failed operation
    """

    status_code: Optional[int] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }


class NotFoundError(CRMError):
    """
    Referenced entity, task or news record does not exist in the tenant.

    A normal outcome, never a system fault.
    """

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        resource_id: Optional[str] = None,
    ):
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(message=message)
        self.resource_id = resource_id


class AccessDeniedError(NotFoundError):
    """
    Target belongs to a different tenant than the caller.

    Subclasses NotFoundError so callers cannot tell a foreign record from
    a missing one.
    """

    def __init__(
        self,
        message: str = "Not found or access denied",
        resource_id: Optional[str] = None,
    ):
        super().__init__(message=message, resource_id=resource_id)


class ValidationError(CRMError):
    """
    Unsupported entity kind or malformed input.

    Surfaced to the immediate caller; never retried automatically.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request parameters",
        invalid_params: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message=message)
        self.invalid_params = invalid_params or {}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["invalid_params"] = self.invalid_params
        return data


class TransientFailure(CRMError):
    """
    Failure of an external collaborator (AI generation, entity linking).

    Recorded as FAILED on the news record and eligible for retry.
    """

    status_code = 500

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message=message, retryable=True)
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"[{self.source}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["source"] = self.source
        return data


class AIGenerationError(TransientFailure):
    """AI generation produced no usable output."""

    def __init__(self, message: str):
        super().__init__(message=message, source="ai_generation")


class EntityLinkingError(TransientFailure):
    """Entity linking could not complete for an AI output."""

    def __init__(self, message: str):
        super().__init__(message=message, source="entity_linking")
