"""
Token verification pipeline.

Decode -> claims validation -> signature verification, producing typed
claims or a classified ``TokenVerificationError``.
"""

import time
from enum import Enum
from typing import Callable, Optional

from shared.config import get_settings
from shared.errors import ErrorCode, TokenVerificationError, VerificationFailure
from shared.logging import get_logger, set_project_context
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.validators import is_non_empty_string
from token_auth.jwt.decoder import DecodedToken, decode_jwt
from token_auth.jwt.errors import JwtError, JwtErrorCode
from token_auth.jwt.signature import (
    ALGORITHM_NONE,
    EmulatorSignatureVerifier,
    PublicKeySignatureVerifier,
    SignatureVerifier,
)
from token_auth.project import AppOptions, find_project_id
from token_auth.validation.claims import ClaimsValidator
from token_auth.validation.profiles import (
    APP_CHECK_TOKEN,
    ID_TOKEN,
    PHONE_NUMBER_TOKEN,
    SESSION_COOKIE,
    KeySource,
    VerificationProfile,
)
from token_auth.validation.results import DecodedClaims


class VerificationStage(str, Enum):
    """Steps of a single verification call."""
    START = "start"
    DECODED = "decoded"
    CONTENT_VALIDATED = "content-validated"
    SIGNATURE_VERIFIED = "signature-verified"
    DONE = "done"
    FAILED = "failed"


class TokenVerifier:
    """Verifies tokens of one kind, described by a VerificationProfile."""

    def __init__(
        self,
        profile: VerificationProfile,
        signature_verifier: Optional[SignatureVerifier] = None,
        options: Optional[AppOptions] = None,
        *,
        claims_validator: Optional[ClaimsValidator] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.profile = profile
        self.options = options or AppOptions()
        self.clock = clock
        self.claims_validator = claims_validator or ClaimsValidator()
        self.metrics = metrics or get_metrics_collector()
        self.logger = get_logger("validation.token_verifier")

        self._signature_verifier = signature_verifier
        self._owns_signature_verifier = signature_verifier is None
        self._emulator_verifier = EmulatorSignatureVerifier(clock)

    def set_algorithm(self, algorithm: str) -> None:
        """Expect a different signing algorithm from now on."""
        self.profile = self.profile.with_algorithm(algorithm)
        if self._owns_signature_verifier:
            self._signature_verifier = None
        self.logger.info("Verifier algorithm changed", token_kind=self.profile.name, algorithm=algorithm)

    async def verify(self, token: str) -> DecodedClaims:
        """Verify ``token`` against the project resolved from options or environment."""
        project_id = await find_project_id(self.options)
        return await self.verify_with_project_id(token, project_id)

    async def verify_with_project_id(self, token: str, project_id: Optional[str]) -> DecodedClaims:
        stage = VerificationStage.START
        try:
            self._check_input(token, project_id)
            set_project_context(project_id)

            stage = VerificationStage.DECODED
            decoded = self._decode(token)

            stage = VerificationStage.CONTENT_VALIDATED
            self.claims_validator.validate(decoded, project_id, self.profile)

            stage = VerificationStage.SIGNATURE_VERIFIED
            await self._verify_signature(token)
        except TokenVerificationError as exc:
            exc.details.setdefault("stage", stage.value)
            self.metrics.record_verification(self.profile.name, exc.reason.value)
            self.logger.warning(
                "Token verification failed",
                token_kind=self.profile.name,
                stage=stage.value,
                reason=exc.reason.value,
                error=exc.message,
            )
            raise

        self.metrics.record_verification(self.profile.name, "verified")
        self.logger.debug("Token verified", token_kind=self.profile.name, sub=decoded.payload.get("sub"))
        return self.profile.result_type(decoded.payload)

    def _check_input(self, token: str, project_id: Optional[str]) -> None:
        profile = self.profile
        if not is_non_empty_string(token):
            raise TokenVerificationError(
                ErrorCode.INVALID_ARGUMENT.value,
                f"First argument to {profile.verify_api_name} must be {profile.article} "
                f"{profile.full_name} string.",
                VerificationFailure.MALFORMED_INPUT,
            )
        if not is_non_empty_string(project_id):
            raise TokenVerificationError(
                ErrorCode.INVALID_CREDENTIAL.value,
                "Must initialize app with a cert credential or set your Firebase project ID as the "
                f"GOOGLE_CLOUD_PROJECT environment variable to call {profile.verify_api_name}.",
                VerificationFailure.PROJECT_NOT_FOUND,
            )

    def _decode(self, token: str) -> DecodedToken:
        profile = self.profile
        try:
            return decode_jwt(token)
        except JwtError as exc:
            raise TokenVerificationError(
                ErrorCode.INVALID_ARGUMENT.value,
                f"Decoding {profile.full_name} failed. Make sure you passed the entire string JWT "
                f"which represents {profile.article} {profile.short_name}." + profile.docs_message(),
                VerificationFailure.DECODE_FAILED,
            ) from exc

    async def _verify_signature(self, token: str) -> None:
        try:
            await self._get_signature_verifier().verify(token)
        except JwtError as exc:
            raise self._map_jwt_error(exc) from exc

    def _get_signature_verifier(self) -> SignatureVerifier:
        if self.profile.is_unsigned:
            return self._emulator_verifier
        if self._signature_verifier is None:
            self._signature_verifier = self._build_signature_verifier()
        return self._signature_verifier

    def _build_signature_verifier(self) -> SignatureVerifier:
        algorithms = (self.profile.algorithm,)
        if self.profile.key_source == KeySource.JWKS:
            return PublicKeySignatureVerifier.with_jwks_url(
                self.profile.cert_source_url, self.options, algorithms=algorithms, clock=self.clock
            )
        return PublicKeySignatureVerifier.with_certificate_url(
            self.profile.cert_source_url, self.options, algorithms=algorithms, clock=self.clock
        )

    def _map_jwt_error(self, error: JwtError) -> TokenVerificationError:
        profile = self.profile
        if error.code == JwtErrorCode.TOKEN_EXPIRED:
            return TokenVerificationError(
                profile.expired_error_code,
                f"{profile.full_name} has expired. Get a fresh {profile.short_name} from your client "
                f"app and try again (auth/{profile.expired_error_code})." + profile.docs_message(),
                VerificationFailure.TOKEN_EXPIRED,
            )
        if error.code == JwtErrorCode.INVALID_SIGNATURE:
            return TokenVerificationError(
                ErrorCode.INVALID_ARGUMENT.value,
                f"{profile.full_name} has invalid signature." + profile.docs_message(),
                VerificationFailure.INVALID_SIGNATURE,
            )
        if error.code == JwtErrorCode.NO_MATCHING_KID:
            return TokenVerificationError(
                ErrorCode.INVALID_ARGUMENT.value,
                f'{profile.full_name} has "kid" claim which does not correspond to a known public key. '
                f"Most likely the {profile.short_name} is expired, so get a fresh token from your "
                "client app and try again.",
                VerificationFailure.NO_MATCHING_KID,
            )
        if error.code == JwtErrorCode.KEY_FETCH_ERROR:
            return TokenVerificationError(
                ErrorCode.INTERNAL_ERROR.value,
                error.message,
                VerificationFailure.KEY_FETCH_FAILED,
            )
        return TokenVerificationError(
            ErrorCode.INVALID_ARGUMENT.value,
            error.message,
            VerificationFailure.INVALID_TOKEN,
        )


def create_id_token_verifier(options: Optional[AppOptions] = None,
                             clock: Callable[[], float] = time.time) -> TokenVerifier:
    return _create_auth_verifier(ID_TOKEN, options, clock)


def create_session_cookie_verifier(options: Optional[AppOptions] = None,
                                   clock: Callable[[], float] = time.time) -> TokenVerifier:
    return _create_auth_verifier(SESSION_COOKIE, options, clock)


def create_app_check_token_verifier(options: Optional[AppOptions] = None,
                                    clock: Callable[[], float] = time.time) -> TokenVerifier:
    return TokenVerifier(APP_CHECK_TOKEN, options=options, clock=clock)


def create_phone_number_token_verifier(options: Optional[AppOptions] = None,
                                       clock: Callable[[], float] = time.time) -> TokenVerifier:
    return TokenVerifier(PHONE_NUMBER_TOKEN, options=options, clock=clock)


def _create_auth_verifier(profile: VerificationProfile, options: Optional[AppOptions],
                          clock: Callable[[], float]) -> TokenVerifier:
    settings = get_settings()
    if settings.emulator_enabled:
        get_logger("validation.token_verifier").info(
            "Auth emulator configured; accepting unsigned tokens",
            token_kind=profile.name,
            emulator_host=settings.auth_emulator_host,
        )
        profile = profile.with_algorithm(ALGORITHM_NONE)
    return TokenVerifier(profile, options=options, clock=clock)
