"""Custom exception hierarchy for the chat completions client.

Every error carries a ``kind`` tag assigned where the failure originates.
Callers (and the retry policy) branch on the tag rather than on the class.
"""

from __future__ import annotations

import enum
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..llm.schemas.completion import PartialChoice


class ErrorKind(enum.Enum):
    PROTOCOL = "protocol"
    REMOTE = "remote"
    TRANSIENT = "transient"
    CANCELLED = "cancelled"
    VALIDATION = "validation"
    CONTRACT = "contract"
    CONFIGURATION = "configuration"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.TRANSIENT


class ChatCompletionsError(Exception):
    """Base exception for client-level issues."""

    kind: ErrorKind = ErrorKind.CONTRACT


class ConfigurationError(ChatCompletionsError):
    """Raised when configuration is invalid or missing."""

    kind = ErrorKind.CONFIGURATION


class ProtocolViolationError(ChatCompletionsError):
    """Raised when the wire format does not match the expected shape."""

    kind = ErrorKind.PROTOCOL


class UnrecoverableRemoteError(ChatCompletionsError):
    """Raised when the remote side reports an error that retrying will not fix.

    ``payload`` holds the decoded ``error`` object when the body was JSON,
    otherwise the raw body text.
    """

    kind = ErrorKind.REMOTE

    def __init__(self, body: str, status_code: int | None = None) -> None:
        self.body = body
        self.status_code = status_code
        self.payload = _decode_error_payload(body)
        super().__init__(_describe_remote_error(self.payload, status_code))


class TransientError(ChatCompletionsError):
    """Raised for failures that may succeed when the request is repeated."""

    kind = ErrorKind.TRANSIENT


class RemoteServiceError(TransientError):
    """Raised when the upstream API responds with a server error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitExceeded(RemoteServiceError):
    """Raised when the upstream API reports rate limiting."""


class UnresponsiveApiError(TransientError):
    """Raised when no data arrives within the unresponsiveness window."""


class TransportFailureError(TransientError):
    """Raised when the connection fails before a response is complete."""


class CancelledCompletionError(ChatCompletionsError):
    """Raised when a streaming callback cancels the completion.

    ``choices`` holds what had been aggregated before the stream stopped.
    """

    kind = ErrorKind.CANCELLED

    def __init__(self, choices: list[PartialChoice]) -> None:
        self.choices = choices
        super().__init__("Completion was cancelled")


class ValidationFailedError(ChatCompletionsError):
    """Raised when locally validated data violates its JSON schema."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class FunctionArgumentsError(ValidationFailedError):
    """Raised when model-supplied function arguments are invalid."""


class StructuredOutputError(ValidationFailedError):
    """Raised when a structured reply cannot be parsed or validated."""


class ContractViolationError(ChatCompletionsError):
    """Raised when a programmer-facing contract is broken."""

    kind = ErrorKind.CONTRACT


class FunctionNotFoundError(ContractViolationError):
    """Raised when the model calls a function that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Function "{name}" not found in user functions')


def error_kind(exc: BaseException) -> ErrorKind:
    """Classify any exception; unknown failures count as transient."""

    if isinstance(exc, ChatCompletionsError):
        return exc.kind
    return ErrorKind.TRANSIENT


def _decode_error_payload(body: str) -> Any:
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError):
        return body
    if isinstance(decoded, dict) and "error" in decoded:
        return decoded["error"]
    return decoded


def _describe_remote_error(payload: Any, status_code: int | None) -> str:
    prefix = f"Remote error ({status_code})" if status_code else "Remote error"
    if isinstance(payload, dict):
        detail = payload.get("message") or payload.get("code") or payload
        return f"{prefix}: {detail}"
    return f"{prefix}: {payload}"
