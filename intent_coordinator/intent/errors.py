"""Public error taxonomy for the intent pipeline.

Many internal failure causes collapse into a handful of public error kinds. The message a caller sees
is taken from `PUBLIC_ERRORS` only; it never reveals which check failed or what the provider said.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class IntentErrorCode(StrEnum):
    """Error codes exposed to API callers."""

    INVALID_INPUT = "INVALID_INPUT"
    UNPARSEABLE_INTENT = "UNPARSEABLE_INTENT"
    PARSER_UNAVAILABLE = "PARSER_UNAVAILABLE"
    IDEMPOTENCY_KEY_CONFLICT = "IDEMPOTENCY_KEY_CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"


@dataclass(frozen=True)
class PublicError:
    """HTTP status class and user-facing message for an error code."""

    status_code: int
    message: str


PUBLIC_ERRORS: dict[IntentErrorCode, PublicError] = {
    IntentErrorCode.INVALID_INPUT: PublicError(400, "Invalid intent text."),
    IntentErrorCode.UNPARSEABLE_INTENT: PublicError(422, "Unable to parse intent. Please rephrase."),
    IntentErrorCode.PARSER_UNAVAILABLE: PublicError(
        503, "Intent parsing service temporarily unavailable."
    ),
    IntentErrorCode.IDEMPOTENCY_KEY_CONFLICT: PublicError(409, "Idempotency key conflict."),
    IntentErrorCode.RATE_LIMITED: PublicError(429, "Too many requests."),
}


class IntentError(Exception):
    """Base class for errors that may be shown to API callers.

    `reason` is for internal logs only and is never part of the public payload.
    """

    code: IntentErrorCode

    def __init__(self, reason: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(reason or self.code.value)
        self.reason = reason
        self.details = details

    @property
    def public(self) -> PublicError:
        return PUBLIC_ERRORS[self.code]

    @property
    def status_code(self) -> int:
        return self.public.status_code

    @property
    def safe_message(self) -> str:
        return self.public.message


class InvalidInput(IntentError):
    """Missing, empty or oversized request text."""

    code = IntentErrorCode.INVALID_INPUT


class UnparseableIntent(IntentError):
    """The text or the model output fails a business-level check."""

    code = IntentErrorCode.UNPARSEABLE_INTENT


class ParserUnavailable(IntentError):
    """The model call failed, or server-side data needed for the computation is missing."""

    code = IntentErrorCode.PARSER_UNAVAILABLE


class IdempotencyKeyConflict(IntentError):
    """The idempotency key was already used for a different request text."""

    code = IntentErrorCode.IDEMPOTENCY_KEY_CONFLICT


class RateLimited(IntentError):
    """The caller exceeded the request budget for the current window."""

    code = IntentErrorCode.RATE_LIMITED
