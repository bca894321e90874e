"""
Signed-token verification.

- keys: public key sources (certificate URL polling and JWKS) with TTL caching
- jwt: compact token decoding and signature verification
- validation: verification profiles, claims checks and the TokenVerifier pipeline
"""

from token_auth.project import AppOptions, find_project_id
from token_auth.validation.profiles import (
    APP_CHECK_TOKEN,
    ID_TOKEN,
    PHONE_NUMBER_TOKEN,
    SESSION_COOKIE,
    VerificationProfile,
)
from token_auth.validation.results import (
    DecodedAppCheckToken,
    DecodedClaims,
    DecodedIdToken,
    PhoneNumberToken,
)
from token_auth.validation.token_verifier import (
    TokenVerifier,
    create_app_check_token_verifier,
    create_id_token_verifier,
    create_phone_number_token_verifier,
    create_session_cookie_verifier,
)

__all__ = [
    "AppOptions",
    "find_project_id",
    "VerificationProfile",
    "ID_TOKEN",
    "SESSION_COOKIE",
    "APP_CHECK_TOKEN",
    "PHONE_NUMBER_TOKEN",
    "DecodedClaims",
    "DecodedIdToken",
    "DecodedAppCheckToken",
    "PhoneNumberToken",
    "TokenVerifier",
    "create_id_token_verifier",
    "create_session_cookie_verifier",
    "create_app_check_token_verifier",
    "create_phone_number_token_verifier",
]
