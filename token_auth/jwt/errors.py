"""
Low-level JWT errors raised by the decoder and signature verifiers.

These are reclassified into ``TokenVerificationError`` by the TokenVerifier
before reaching SDK callers.
"""

from enum import Enum


class JwtErrorCode(str, Enum):
    """JWT error codes."""
    INVALID_ARGUMENT = "invalid-argument"
    INVALID_CREDENTIAL = "invalid-credential"
    TOKEN_EXPIRED = "token-expired"
    INVALID_TOKEN = "invalid-token"
    INVALID_SIGNATURE = "invalid-signature"
    NO_MATCHING_KID = "no-matching-kid-error"
    NO_KID_IN_HEADER = "no-kid-error"
    KEY_FETCH_ERROR = "key-fetch-error"


class JwtError(Exception):
    """JWT failure with a machine readable code."""

    def __init__(self, code: JwtErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)
