"""Error taxonomy surfaced to tool callers."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Type


class ErrorKind(str, Enum):
    GENERIC = "generic"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    PERMISSION = "permission"
    RATE_LIMIT = "rate_limit"


class AzureDevOpsError(Exception):
    """Base error for Azure DevOps failures. Also the ``Generic`` kind."""

    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AzureDevOpsAuthenticationError(AzureDevOpsError):
    """Credentials missing, rejected, or the first connection failed."""

    kind = ErrorKind.AUTHENTICATION


class AzureDevOpsValidationError(AzureDevOpsError):
    """Invalid input or a failed precondition; carries the raw upstream body."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, response: Optional[Any] = None):
        super().__init__(message)
        self.response = response


class AzureDevOpsResourceNotFoundError(AzureDevOpsError):
    kind = ErrorKind.RESOURCE_NOT_FOUND


class AzureDevOpsPermissionError(AzureDevOpsError):
    """Valid identity, insufficient rights."""

    kind = ErrorKind.PERMISSION


class AzureDevOpsRateLimitError(AzureDevOpsError):
    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, reset_at: datetime):
        super().__init__(message)
        self.reset_at = reset_at


ERROR_CLASSES: Dict[ErrorKind, Type[AzureDevOpsError]] = {
    ErrorKind.GENERIC: AzureDevOpsError,
    ErrorKind.AUTHENTICATION: AzureDevOpsAuthenticationError,
    ErrorKind.VALIDATION: AzureDevOpsValidationError,
    ErrorKind.RESOURCE_NOT_FOUND: AzureDevOpsResourceNotFoundError,
    ErrorKind.PERMISSION: AzureDevOpsPermissionError,
    ErrorKind.RATE_LIMIT: AzureDevOpsRateLimitError,
}


def is_azure_devops_error(error: Any) -> bool:
    return isinstance(error, AzureDevOpsError)


def _no_details(error: AzureDevOpsError) -> str:
    return ""


def _validation_details(error: AzureDevOpsError) -> str:
    response = getattr(error, "response", None)
    if response is None:
        return "\nNo response details available"
    try:
        rendered = json.dumps(response, default=str)
    except (TypeError, ValueError):
        rendered = repr(response)
    return f"\nResponse: {rendered}"


def _rate_limit_details(error: AzureDevOpsError) -> str:
    reset_at = getattr(error, "reset_at", None)
    if reset_at is None:
        return ""
    return f"\nReset at: {reset_at.isoformat()}"


_DETAIL_FORMATTERS: Dict[ErrorKind, Callable[[AzureDevOpsError], str]] = {
    ErrorKind.GENERIC: _no_details,
    ErrorKind.AUTHENTICATION: _no_details,
    ErrorKind.VALIDATION: _validation_details,
    ErrorKind.RESOURCE_NOT_FOUND: _no_details,
    ErrorKind.PERMISSION: _no_details,
    ErrorKind.RATE_LIMIT: _rate_limit_details,
}


def format_error(error: Any) -> str:
    """
    Render any caught value for display.
    - Plain values (None, str, numbers, bools) are rendered directly.
    - Exceptions render as "<ClassName>: <message>".
    - Validation errors append the upstream response; rate-limit errors append
      the reset time.
    """
    if error is None:
        return "null"
    if isinstance(error, str):
        return error
    if isinstance(error, (bool, int, float)):
        return str(error)

    name = type(error).__name__ if isinstance(error, BaseException) else "Unknown"
    message = str(error) if isinstance(error, BaseException) else ""
    text = f"{name}: {message or 'Unknown error'}"

    if isinstance(error, AzureDevOpsError):
        text += _DETAIL_FORMATTERS[error.kind](error)
    return text


__all__ = [
    "ErrorKind",
    "AzureDevOpsError",
    "AzureDevOpsAuthenticationError",
    "AzureDevOpsValidationError",
    "AzureDevOpsResourceNotFoundError",
    "AzureDevOpsPermissionError",
    "AzureDevOpsRateLimitError",
    "ERROR_CLASSES",
    "is_azure_devops_error",
    "format_error",
]
