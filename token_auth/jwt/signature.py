"""
Signature verification against public keys from a KeyFetcher.
"""

import time
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence

from jose import jwk
from jose.exceptions import JOSEError

from shared.errors import KeyFetchError
from shared.logging import get_logger
from token_auth.jwt.decoder import DecodedToken, decode_jwt
from token_auth.jwt.errors import JwtError, JwtErrorCode
from token_auth.keys.fetcher import JwksKeyFetcher, KeyFetcher, UrlKeyFetcher

ALGORITHM_RS256 = "RS256"
ALGORITHM_ES256 = "ES256"
ALGORITHM_NONE = "none"

INVALID_SIGNATURE_MESSAGE = "The provided token has invalid signature."


class SignatureVerifier(Protocol):
    async def verify(self, token: str) -> None:
        ...


def verify_time_claims(payload: Mapping[str, Any], now: float) -> None:
    """Enforce ``exp`` and ``nbf`` against ``now`` (epoch seconds)."""
    exp = payload.get("exp")
    if exp is not None:
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise JwtError(JwtErrorCode.INVALID_TOKEN, 'The "exp" claim must be a number.')
        if now >= exp:
            raise JwtError(
                JwtErrorCode.TOKEN_EXPIRED,
                "The provided token has expired. Get a fresh token from your client app and try again.",
            )

    nbf = payload.get("nbf")
    if nbf is not None:
        if isinstance(nbf, bool) or not isinstance(nbf, (int, float)):
            raise JwtError(JwtErrorCode.INVALID_TOKEN, 'The "nbf" claim must be a number.')
        if now < nbf:
            raise JwtError(JwtErrorCode.INVALID_TOKEN, "The provided token is not yet valid.")


class PublicKeySignatureVerifier:
    """Verifies token signatures with keys obtained from a KeyFetcher.

    Tokens naming a ``kid`` are checked against that key only. Tokens without
    a ``kid`` are checked against every cached key and accepted if any of
    them matches.
    """

    def __init__(
        self,
        key_fetcher: KeyFetcher,
        algorithms: Sequence[str] = (ALGORITHM_RS256,),
        clock: Callable[[], float] = time.time,
    ) -> None:
        if key_fetcher is None:
            raise ValueError("The provided key fetcher is not an object or null.")
        self.key_fetcher = key_fetcher
        self.algorithms = tuple(algorithms)
        self.clock = clock
        self.logger = get_logger("jwt.signature")

    @classmethod
    def with_certificate_url(cls, url: str, options=None, *,
                             algorithms: Sequence[str] = (ALGORITHM_RS256,),
                             clock: Callable[[], float] = time.time) -> "PublicKeySignatureVerifier":
        """Build a verifier backed by a ``{kid: PEM}`` certificate URL."""
        return cls(UrlKeyFetcher(url, clock=clock, **_http_kwargs(options)), algorithms, clock)

    @classmethod
    def with_jwks_url(cls, url: str, options=None, *,
                      algorithms: Sequence[str] = (ALGORITHM_RS256,),
                      clock: Callable[[], float] = time.time) -> "PublicKeySignatureVerifier":
        """Build a verifier backed by a JWKS endpoint."""
        return cls(JwksKeyFetcher(url, clock=clock, **_http_kwargs(options)), algorithms, clock)

    async def verify(self, token: str) -> None:
        decoded = decode_jwt(token)

        if decoded.header.get("alg") not in self.algorithms:
            raise JwtError(JwtErrorCode.INVALID_SIGNATURE, INVALID_SIGNATURE_MESSAGE)

        try:
            await self._verify_with_kid(decoded)
        except JwtError as exc:
            if exc.code != JwtErrorCode.NO_KID_IN_HEADER:
                raise
            self.logger.debug("Token header has no kid; trying every cached key")
            await self._verify_without_kid(decoded)

        # Expiry belongs to the token, not to whichever key matched
        verify_time_claims(decoded.payload, self.clock())

    async def _verify_with_kid(self, decoded: DecodedToken) -> None:
        kid = decoded.header.get("kid")
        if not kid:
            raise JwtError(JwtErrorCode.NO_KID_IN_HEADER, "The provided token has no kid in its header.")

        public_keys = await self._fetch_public_keys()
        if not isinstance(kid, str) or kid not in public_keys:
            raise JwtError(JwtErrorCode.NO_MATCHING_KID, "The provided token has no matching kid.")

        if not self._signature_matches(decoded, public_keys[kid]):
            raise JwtError(JwtErrorCode.INVALID_SIGNATURE, INVALID_SIGNATURE_MESSAGE)

    async def _verify_without_kid(self, decoded: DecodedToken) -> None:
        public_keys = await self._fetch_public_keys()
        if not public_keys:
            raise JwtError(
                JwtErrorCode.NO_KID_IN_HEADER,
                "The provided token has no kid in its header and no public keys are available.",
            )

        for key in public_keys.values():
            if self._signature_matches(decoded, key):
                return
        raise JwtError(JwtErrorCode.INVALID_SIGNATURE, INVALID_SIGNATURE_MESSAGE)

    async def _fetch_public_keys(self) -> Dict[str, Any]:
        try:
            return await self.key_fetcher.fetch_public_keys()
        except KeyFetchError as exc:
            raise JwtError(JwtErrorCode.KEY_FETCH_ERROR, exc.message) from exc

    def _signature_matches(self, decoded: DecodedToken, key: Any) -> bool:
        try:
            public_key = jwk.construct(key, decoded.header["alg"])
            return bool(public_key.verify(decoded.signing_input, decoded.signature))
        except (JOSEError, ValueError, TypeError) as exc:
            self.logger.debug("Public key could not be used for verification", error=str(exc))
            return False


class EmulatorSignatureVerifier:
    """Accepts unsigned tokens for local emulation.

    No key source is contacted and no signature is checked; time claims are
    still enforced.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock

    async def verify(self, token: str) -> None:
        decoded = decode_jwt(token)
        verify_time_claims(decoded.payload, self.clock())


def _http_kwargs(options) -> Dict[str, Any]:
    if options is None:
        return {}
    kwargs: Dict[str, Any] = {}
    if options.http_client is not None:
        kwargs["http_client"] = options.http_client
    if options.http_timeout is not None:
        kwargs["timeout"] = options.http_timeout
    if options.http_proxy is not None:
        kwargs["proxy"] = options.http_proxy
    return kwargs
