"""
Map any caught failure onto the error taxonomy.

Two upstream channels reach this module: transport errors that still carry an
HTTP status, and message-only exceptions. Status codes are mapped structurally;
messages fall back to ordered substring checks. The textual path is best-effort:
"not found" anywhere in a message means ResourceNotFound, and the checks run in
a fixed order so overlapping keywords always resolve the same way.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Tuple

from .errors import (
    AzureDevOpsAuthenticationError,
    AzureDevOpsError,
    AzureDevOpsPermissionError,
    AzureDevOpsRateLimitError,
    AzureDevOpsResourceNotFoundError,
    AzureDevOpsValidationError,
)


class Phase(str, Enum):
    CONNECT = "connect"
    OPERATION = "operation"


class WriteIntent(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class OperationContext:
    """What the failing call was doing, used to phrase the resulting error."""

    operation: str
    entity: Optional[str] = None
    identifier: Any = None
    scope: Optional[str] = None
    phase: Phase = Phase.OPERATION
    intent: Optional[WriteIntent] = None

    def subject(self) -> Optional[str]:
        if self.identifier is None or self.identifier == "":
            return None
        text = str(self.identifier)
        if self.scope:
            text += f" in {self.scope}"
        return text

    def not_found_message(self) -> Optional[str]:
        if not self.entity:
            return None
        subject = self.subject()
        if subject is None:
            return f"{self.entity} not found"
        return f"{self.entity} not found: {subject}"


AUTH_MARKERS = ("Authentication", "Unauthorized", "401")
NOT_FOUND_MARKERS = ("not found", "does not exist", "404")
VALIDATION_MARKERS = ("Validation",)

VERSION_CONFLICT_MESSAGE = (
    "Version conflict: The {entity} has been modified since you retrieved it. "
    "Please get the latest version and try again."
)


def _status_and_payload(
    error: BaseException,
) -> Tuple[Optional[int], Any, Optional[str], Mapping[str, str], Optional[str]]:
    """
    Extract (status, json body, text body, headers, upstream message) from
    either our AzureDevOpsHTTPError or a raw httpx.HTTPStatusError.
    """
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return (
            status,
            getattr(error, "response_json", None),
            getattr(error, "response_text", None),
            getattr(error, "headers", None) or {},
            getattr(error, "upstream_message", None),
        )

    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        body: Any = None
        text: Optional[str] = None
        try:
            body = response.json()
        except Exception:
            text = (getattr(response, "text", "") or "")[:500] or None
        message = body.get("message") if isinstance(body, dict) else None
        return status, body, text, getattr(response, "headers", None) or {}, message

    return None, None, None, {}, None


def _body_text(body: Any, text: Optional[str]) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if text:
        return text
    return ""


def _reset_at(headers: Mapping[str, str]) -> datetime:
    now = datetime.now(timezone.utc)
    lowered = {str(k).lower(): v for k, v in headers.items()}

    retry_after = lowered.get("retry-after")
    if retry_after:
        try:
            return datetime.fromtimestamp(
                time.time() + float(retry_after), tz=timezone.utc
            )
        except (ValueError, OverflowError, OSError):
            pass
        try:
            return parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            pass

    reset = lowered.get("x-ratelimit-reset")
    if reset:
        try:
            return datetime.fromtimestamp(float(reset), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            pass
    return now


def _from_status(
    error: BaseException,
    context: OperationContext,
    status: int,
    body: Any,
    text: Optional[str],
    headers: Mapping[str, str],
    upstream: Optional[str],
) -> AzureDevOpsError:
    detail = upstream or _body_text(body, text) or str(error)
    op = context.operation

    if status == 404:
        return AzureDevOpsResourceNotFoundError(
            context.not_found_message() or f"Failed to {op}: resource not found"
        )

    if status in (401, 403):
        if context.phase is Phase.CONNECT:
            return AzureDevOpsAuthenticationError(f"Authentication failed: {detail}")
        subject = context.subject()
        message = f"Permission denied to {op}"
        if subject:
            message += f": {subject}"
        return AzureDevOpsPermissionError(message)

    if status == 400:
        return AzureDevOpsValidationError(
            f"Invalid request when trying to {op}: {detail}",
            body if body is not None else text,
        )

    if status == 412:
        entity = context.entity or "resource"
        if context.intent is WriteIntent.CREATE:
            subject = context.subject()
            message = f"{entity} already exists"
            if subject:
                message += f": {subject}"
        elif context.intent is WriteIntent.UPDATE:
            message = VERSION_CONFLICT_MESSAGE.format(entity=entity.lower())
        else:
            message = f"Precondition failed when trying to {op}: {detail}"
        return AzureDevOpsValidationError(
            message, body if body is not None else text
        )

    if status == 429:
        return AzureDevOpsRateLimitError(
            f"Rate limit exceeded when trying to {op}: {detail}", _reset_at(headers)
        )

    body_text = _body_text(body, text) or detail
    return AzureDevOpsError(f"Failed to {op}: {status} {body_text}")


def _from_message(message: str, context: OperationContext) -> AzureDevOpsError:
    if any(marker in message for marker in AUTH_MARKERS):
        return AzureDevOpsAuthenticationError(f"Failed to authenticate: {message}")
    if any(marker in message for marker in NOT_FOUND_MARKERS):
        return AzureDevOpsResourceNotFoundError(
            context.not_found_message() or message
        )
    if any(marker in message for marker in VALIDATION_MARKERS):
        return AzureDevOpsValidationError(message)
    return AzureDevOpsError(f"Failed to {context.operation}: {message}")


def classify(error: Any, context: OperationContext) -> AzureDevOpsError:
    """
    Return exactly one taxonomy error for `error`. Never raises.

    Order:
      1. taxonomy errors pass through unchanged
      2. anything carrying an HTTP status is mapped by status
      3. other exceptions are matched on their message text
      4. non-exception values become a generic "Unknown error occurred"
    """
    if isinstance(error, AzureDevOpsError):
        return error

    if not isinstance(error, BaseException):
        return AzureDevOpsError(
            f"Failed to {context.operation}: Unknown error occurred"
        )

    status, body, text, headers, upstream = _status_and_payload(error)
    if status is not None:
        return _from_status(error, context, status, body, text, headers, upstream)

    message = str(error) or type(error).__name__
    return _from_message(message, context)


@contextmanager
def classified(context: OperationContext) -> Iterator[None]:
    """Re-raise any failure inside the block as a classified taxonomy error."""
    try:
        yield
    except AzureDevOpsError:
        raise
    except Exception as exc:
        raise classify(exc, context) from exc


__all__ = [
    "Phase",
    "WriteIntent",
    "OperationContext",
    "classify",
    "classified",
]
