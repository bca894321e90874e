"""
Shared error handling for the token verification SDK.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Public error codes surfaced to SDK callers."""
    INVALID_ARGUMENT = "invalid-argument"
    INVALID_CREDENTIAL = "invalid-credential"
    KEY_FETCH_ERROR = "key-fetch-error"
    INTERNAL_ERROR = "internal-error"


class VerificationFailure(str, Enum):
    """Stable classification of why a token failed verification."""
    MALFORMED_INPUT = "malformed-input"
    DECODE_FAILED = "decode-failed"
    MISSING_KID = "missing-kid"
    WRONG_TOKEN_KIND = "wrong-token-kind"
    INCORRECT_ALGORITHM = "incorrect-algorithm"
    INCORRECT_TYPE = "incorrect-type"
    INCORRECT_AUDIENCE = "incorrect-audience"
    INCORRECT_ISSUER = "incorrect-issuer"
    INVALID_SUBJECT = "invalid-subject"
    TOKEN_EXPIRED = "token-expired"
    INVALID_SIGNATURE = "invalid-signature"
    NO_MATCHING_KID = "no-matching-kid"
    KEY_FETCH_FAILED = "key-fetch-failed"
    PROJECT_NOT_FOUND = "project-not-found"
    INVALID_TOKEN = "invalid-token"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PlatformError(Exception):
    """Base exception for SDK errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(PlatformError):
    """Invalid arguments supplied by the caller."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.INVALID_ARGUMENT.value, message, details)


class KeyFetchError(PlatformError):
    """A public key source could not be reached or returned an invalid response."""

    def __init__(self, message: str = "Error fetching public keys", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.KEY_FETCH_ERROR.value, message, details)


class TokenVerificationError(PlatformError):
    """A token was rejected.

    ``code`` is the public, profile-aware error code (for example
    ``id-token-expired``) and ``reason`` is the stable failure kind callers
    should branch on.
    """

    def __init__(
        self,
        code: str,
        message: str,
        reason: VerificationFailure,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.reason = reason
        merged = {"reason": reason.value}
        merged.update(details or {})
        super().__init__(code, message, merged)
