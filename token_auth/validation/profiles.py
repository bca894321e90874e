"""
Verification profiles.

A profile describes one kind of token: where its public keys live, which
algorithm signs it, how its audience and issuer are scoped to a project and
the human names used in error messages.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from shared.errors import ValidationError
from shared.validators import is_non_empty_string, is_url
from token_auth.jwt.signature import ALGORITHM_ES256, ALGORITHM_NONE, ALGORITHM_RS256
from token_auth.validation.results import (
    DecodedAppCheckToken,
    DecodedClaims,
    DecodedIdToken,
    PhoneNumberToken,
)


class KeySource(str, Enum):
    """How a profile's public keys are published."""
    CERTIFICATE_URL = "url"
    JWKS = "jwks"


class AudienceCheck(str, Enum):
    """How the ``aud`` claim is matched against the project."""
    EQUALS = "equals"
    CONTAINS = "contains"


class IssuerCheck(str, Enum):
    """How the ``iss`` claim is matched against the project."""
    EXACT = "exact"
    PREFIX = "prefix"
    VIA_AUDIENCE = "via-audience"


@dataclass(frozen=True)
class VerificationProfile:
    """Immutable description of a token kind."""
    name: str
    cert_source_url: str
    key_source: KeySource
    algorithm: str
    issuer_prefix: str
    docs_url: str
    verify_api_name: str
    full_name: str
    short_name: str
    expired_error_code: str
    audience_check: AudienceCheck = AudienceCheck.EQUALS
    audience_prefix: str = ""
    issuer_check: IssuerCheck = IssuerCheck.EXACT
    expected_type: Optional[str] = None
    max_subject_length: Optional[int] = None
    result_type: Type[DecodedClaims] = DecodedClaims

    def __post_init__(self):
        if not is_url(self.cert_source_url):
            raise ValidationError("The provided public client certificate URL is an invalid URL.")
        if not is_non_empty_string(self.algorithm):
            raise ValidationError("The provided JWT algorithm is an empty string.")
        if not is_url(self.issuer_prefix):
            raise ValidationError("The provided JWT issuer is an invalid URL.")
        if not is_url(self.docs_url):
            raise ValidationError("The provided JWT verification documentation URL is invalid.")
        if not is_non_empty_string(self.verify_api_name):
            raise ValidationError("The JWT verify API name must be a non-empty string.")
        if not is_non_empty_string(self.full_name):
            raise ValidationError("The JWT public full name must be a non-empty string.")
        if not is_non_empty_string(self.short_name):
            raise ValidationError("The JWT public short name must be a non-empty string.")
        if not is_non_empty_string(self.expired_error_code):
            raise ValidationError("The JWT expiration error code must be a non-empty string.")

    @property
    def article(self) -> str:
        return "an" if self.short_name[0].lower() in "aeiou" else "a"

    @property
    def is_unsigned(self) -> bool:
        return self.algorithm == ALGORITHM_NONE

    def expected_audience(self, project_id: str) -> str:
        return self.audience_prefix + project_id

    def expected_issuer(self, project_id: str) -> str:
        return self.issuer_prefix + project_id

    def docs_message(self) -> str:
        return f" See {self.docs_url} for details on how to retrieve {self.article} {self.short_name}."

    def project_match_message(self) -> str:
        return (
            f" Make sure the {self.short_name} comes from the same Firebase project "
            "as the service account used to authenticate this SDK."
        )

    def with_algorithm(self, algorithm: str) -> "VerificationProfile":
        """Copy of this profile expecting a different signing algorithm."""
        return dataclasses.replace(self, algorithm=algorithm)


ID_TOKEN = VerificationProfile(
    name="id_token",
    cert_source_url="https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com",
    key_source=KeySource.CERTIFICATE_URL,
    algorithm=ALGORITHM_RS256,
    issuer_prefix="https://securetoken.google.com/",
    docs_url="https://firebase.google.com/docs/auth/admin/verify-id-tokens",
    verify_api_name="verify_id_token()",
    full_name="Firebase ID token",
    short_name="ID token",
    expired_error_code="id-token-expired",
    max_subject_length=128,
    result_type=DecodedIdToken,
)

SESSION_COOKIE = VerificationProfile(
    name="session_cookie",
    cert_source_url="https://www.googleapis.com/identitytoolkit/v3/relyingparty/publicKeys",
    key_source=KeySource.CERTIFICATE_URL,
    algorithm=ALGORITHM_RS256,
    issuer_prefix="https://session.firebase.google.com/",
    docs_url="https://firebase.google.com/docs/auth/admin/manage-cookies",
    verify_api_name="verify_session_cookie()",
    full_name="Firebase session cookie",
    short_name="session cookie",
    expired_error_code="session-cookie-expired",
    max_subject_length=128,
    result_type=DecodedIdToken,
)

APP_CHECK_TOKEN = VerificationProfile(
    name="app_check_token",
    cert_source_url="https://firebaseappcheck.googleapis.com/v1beta/jwks",
    key_source=KeySource.JWKS,
    algorithm=ALGORITHM_RS256,
    issuer_prefix="https://firebaseappcheck.googleapis.com/",
    docs_url="https://firebase.google.com/docs/app-check/custom-resource-backend",
    verify_api_name="verify_token()",
    full_name="App Check token",
    short_name="App Check token",
    expired_error_code="app-check-token-expired",
    audience_check=AudienceCheck.CONTAINS,
    audience_prefix="projects/",
    issuer_check=IssuerCheck.PREFIX,
    result_type=DecodedAppCheckToken,
)

PHONE_NUMBER_TOKEN = VerificationProfile(
    name="phone_number_token",
    cert_source_url="https://fpnv.googleapis.com/v1beta/jwks",
    key_source=KeySource.JWKS,
    algorithm=ALGORITHM_ES256,
    issuer_prefix="https://fpnv.googleapis.com/projects/",
    docs_url="https://firebase.google.com/docs/phone-number-verification",
    verify_api_name="verify_token()",
    full_name="Firebase Phone Verification token",
    short_name="FPNV token",
    expired_error_code="expired-token",
    audience_check=AudienceCheck.CONTAINS,
    audience_prefix="https://fpnv.googleapis.com/projects/",
    issuer_check=IssuerCheck.VIA_AUDIENCE,
    expected_type="JWT",
    result_type=PhoneNumberToken,
)
