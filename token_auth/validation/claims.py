"""
Structural and claims-level checks run before any signature work.
"""

from typing import Any, Mapping

from shared.errors import ErrorCode, TokenVerificationError, VerificationFailure
from shared.logging import get_logger
from token_auth.jwt.decoder import DecodedToken
from token_auth.validation.profiles import AudienceCheck, IssuerCheck, VerificationProfile

# Audience of Firebase Auth custom tokens
CUSTOM_TOKEN_AUDIENCE = (
    "https://identitytoolkit.googleapis.com/google.identity.identitytoolkit.v1.IdentityToolkit"
)


class ClaimsValidator:
    """Checks header and payload claims against a verification profile.

    Checks run in a fixed order and the first failure is raised as a
    ``TokenVerificationError`` with code ``invalid-argument``.
    """

    def __init__(self):
        self.logger = get_logger("validation.claims")

    def validate(self, decoded: DecodedToken, project_id: str, profile: VerificationProfile) -> None:
        header = decoded.header
        payload = decoded.payload

        self._check_kid(header, payload, profile)
        self._check_algorithm(header, profile)
        self._check_type(header, profile)
        self._check_audience(payload, project_id, profile)
        self._check_issuer(payload, project_id, profile)
        self._check_subject(payload, profile)

    def _check_kid(self, header: Mapping[str, Any], payload: Mapping[str, Any],
                   profile: VerificationProfile) -> None:
        if profile.is_unsigned:
            return
        if "kid" in header:
            if isinstance(header["kid"], str):
                return
            self._fail(
                VerificationFailure.MISSING_KID,
                f'{profile.full_name} has a "kid" claim that is not a string.' + profile.docs_message(),
            )

        if payload.get("aud") == CUSTOM_TOKEN_AUDIENCE:
            self._fail(
                VerificationFailure.WRONG_TOKEN_KIND,
                f"{profile.verify_api_name} expects {profile.article} {profile.short_name}, "
                "but was given a custom token." + profile.docs_message(),
            )
        if _is_legacy_custom_token(header, payload):
            self._fail(
                VerificationFailure.WRONG_TOKEN_KIND,
                f"{profile.verify_api_name} expects {profile.article} {profile.short_name}, "
                "but was given a legacy custom token." + profile.docs_message(),
            )
        self._fail(
            VerificationFailure.MISSING_KID,
            f'{profile.full_name} has no "kid" claim.' + profile.docs_message(),
        )

    def _check_algorithm(self, header: Mapping[str, Any], profile: VerificationProfile) -> None:
        alg = header.get("alg")
        if alg != profile.algorithm:
            self._fail(
                VerificationFailure.INCORRECT_ALGORITHM,
                f'{profile.full_name} has incorrect algorithm. Expected "{profile.algorithm}" '
                f'but got "{alg}".' + profile.docs_message(),
            )

    def _check_type(self, header: Mapping[str, Any], profile: VerificationProfile) -> None:
        if profile.expected_type is None:
            return
        typ = header.get("typ")
        if typ != profile.expected_type:
            self._fail(
                VerificationFailure.INCORRECT_TYPE,
                f'{profile.full_name} has incorrect typ. Expected "{profile.expected_type}" '
                f'but got "{typ}".' + profile.docs_message(),
            )

    def _check_audience(self, payload: Mapping[str, Any], project_id: str,
                        profile: VerificationProfile) -> None:
        aud = payload.get("aud")
        expected = profile.expected_audience(project_id)

        if profile.audience_check == AudienceCheck.CONTAINS:
            if isinstance(aud, list) and expected in aud:
                return
            self._fail(
                VerificationFailure.INCORRECT_AUDIENCE,
                f'{profile.full_name} has incorrect "aud" (audience) claim. Expected "{expected}" '
                f'to be one of "{_join(aud)}".' + profile.project_match_message() + profile.docs_message(),
            )

        if aud != expected:
            self._fail(
                VerificationFailure.INCORRECT_AUDIENCE,
                f'{profile.full_name} has incorrect "aud" (audience) claim. Expected "{expected}" '
                f'but got "{aud}".' + profile.project_match_message() + profile.docs_message(),
            )

    def _check_issuer(self, payload: Mapping[str, Any], project_id: str,
                      profile: VerificationProfile) -> None:
        if profile.issuer_check == IssuerCheck.VIA_AUDIENCE:
            return

        iss = payload.get("iss")
        if profile.issuer_check == IssuerCheck.PREFIX:
            if isinstance(iss, str) and iss.startswith(profile.issuer_prefix):
                return
            self._fail(
                VerificationFailure.INCORRECT_ISSUER,
                f'{profile.full_name} has incorrect "iss" (issuer) claim. Expected it to start with '
                f'"{profile.issuer_prefix}" but got "{iss}".' + profile.docs_message(),
            )

        expected = profile.expected_issuer(project_id)
        if iss != expected:
            self._fail(
                VerificationFailure.INCORRECT_ISSUER,
                f'{profile.full_name} has incorrect "iss" (issuer) claim. Expected "{expected}" '
                f'but got "{iss}".' + profile.project_match_message() + profile.docs_message(),
            )

    def _check_subject(self, payload: Mapping[str, Any], profile: VerificationProfile) -> None:
        sub = payload.get("sub")
        if not isinstance(sub, str):
            self._fail(
                VerificationFailure.INVALID_SUBJECT,
                f'{profile.full_name} has no "sub" (subject) claim.' + profile.docs_message(),
            )
        if sub == "":
            self._fail(
                VerificationFailure.INVALID_SUBJECT,
                f'{profile.full_name} has an empty string "sub" (subject) claim.' + profile.docs_message(),
            )
        if profile.max_subject_length is not None and len(sub) > profile.max_subject_length:
            self._fail(
                VerificationFailure.INVALID_SUBJECT,
                f'{profile.full_name} has "sub" (subject) claim longer than '
                f"{profile.max_subject_length} characters." + profile.docs_message(),
            )

    def _fail(self, reason: VerificationFailure, message: str) -> None:
        self.logger.debug("Token claims rejected", reason=reason.value)
        raise TokenVerificationError(ErrorCode.INVALID_ARGUMENT.value, message, reason)


def _is_legacy_custom_token(header: Mapping[str, Any], payload: Mapping[str, Any]) -> bool:
    data = payload.get("d")
    return (
        header.get("alg") == "HS256"
        and payload.get("v") == 0
        and not isinstance(payload.get("v"), bool)
        and isinstance(data, dict)
        and "uid" in data
    )


def _join(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    return str(value)
