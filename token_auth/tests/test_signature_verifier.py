"""
Unit tests for signature verification.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import KeyFetchError
from shared.test_helpers import FIXED_NOW, FakeClock, TestDataFactory, generate_ec_key, generate_rsa_key, unsigned_token
from token_auth.jwt.errors import JwtError, JwtErrorCode
from token_auth.jwt.signature import (
    EmulatorSignatureVerifier,
    PublicKeySignatureVerifier,
    verify_time_claims,
)
from token_auth.keys.fetcher import JwksKeyFetcher, UrlKeyFetcher
from token_auth.project import AppOptions


@pytest.fixture(scope="module")
def rsa_key():
    return generate_rsa_key("kid-1")


@pytest.fixture(scope="module")
def other_rsa_key():
    return generate_rsa_key("kid-2")


@pytest.fixture(scope="module")
def ec_key():
    return generate_ec_key("ec-kid")


def key_fetcher(keys):
    fetcher = MagicMock()
    fetcher.fetch_public_keys = AsyncMock(return_value=keys)
    return fetcher


class TestPublicKeySignatureVerifier:
    """Test cases for PublicKeySignatureVerifier."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def claims(self):
        return TestDataFactory.id_token_claims()

    @pytest.mark.asyncio
    async def test_verifies_with_certificate(self, rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-1": rsa_key.certificate_pem}), clock=clock)

        await verifier.verify(rsa_key.sign(claims))

    @pytest.mark.asyncio
    async def test_verifies_with_jwk(self, rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-1": rsa_key.public_jwk()}), clock=clock)

        await verifier.verify(rsa_key.sign(claims))

    @pytest.mark.asyncio
    async def test_verifies_es256(self, ec_key, claims, clock):
        verifier = PublicKeySignatureVerifier(
            key_fetcher({"ec-kid": ec_key.public_jwk()}), algorithms=("ES256",), clock=clock
        )

        await verifier.verify(ec_key.sign(claims))

    @pytest.mark.asyncio
    async def test_wrong_key_is_invalid_signature(self, rsa_key, other_rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-1": other_rsa_key.certificate_pem}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims))

        assert exc_info.value.code == JwtErrorCode.INVALID_SIGNATURE

    @pytest.mark.asyncio
    async def test_unknown_kid(self, rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"other": rsa_key.certificate_pem}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims))

        assert exc_info.value.code == JwtErrorCode.NO_MATCHING_KID

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kid", [["kid-1"], {"a": 1}, 7])
    async def test_non_string_kid_has_no_matching_key(self, rsa_key, claims, clock, kid):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-1": rsa_key.certificate_pem}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims, headers={"kid": kid}))

        assert exc_info.value.code == JwtErrorCode.NO_MATCHING_KID

    @pytest.mark.asyncio
    async def test_unexpected_algorithm(self, ec_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"ec-kid": ec_key.public_jwk()}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(ec_key.sign(claims))

        assert exc_info.value.code == JwtErrorCode.INVALID_SIGNATURE

    @pytest.mark.asyncio
    async def test_expired_token(self, rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-1": rsa_key.certificate_pem}), clock=clock)
        clock.advance(3600)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims))

        assert exc_info.value.code == JwtErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_kidless_token_tries_every_key(self, rsa_key, other_rsa_key, claims, clock):
        fetcher = key_fetcher({
            "kid-2": other_rsa_key.certificate_pem,
            "kid-1": rsa_key.certificate_pem,
        })
        verifier = PublicKeySignatureVerifier(fetcher, clock=clock)

        await verifier.verify(rsa_key.sign(claims, include_kid=False))

    @pytest.mark.asyncio
    async def test_kidless_token_with_no_matching_key(self, rsa_key, other_rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({"kid-2": other_rsa_key.certificate_pem}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims, include_kid=False))

        assert exc_info.value.code == JwtErrorCode.INVALID_SIGNATURE

    @pytest.mark.asyncio
    async def test_kidless_expired_token_reports_expiry(self, rsa_key, other_rsa_key, claims, clock):
        fetcher = key_fetcher({
            "kid-2": other_rsa_key.certificate_pem,
            "kid-1": rsa_key.certificate_pem,
        })
        verifier = PublicKeySignatureVerifier(fetcher, clock=clock)
        clock.advance(7200)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims, include_kid=False))

        assert exc_info.value.code == JwtErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_kidless_token_with_empty_key_set(self, rsa_key, claims, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims, include_kid=False))

        assert exc_info.value.code == JwtErrorCode.NO_KID_IN_HEADER

    @pytest.mark.asyncio
    async def test_key_fetch_failure(self, rsa_key, claims, clock):
        fetcher = MagicMock()
        fetcher.fetch_public_keys = AsyncMock(side_effect=KeyFetchError("Error fetching public keys: boom"))
        verifier = PublicKeySignatureVerifier(fetcher, clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(rsa_key.sign(claims))

        assert exc_info.value.code == JwtErrorCode.KEY_FETCH_ERROR
        assert exc_info.value.message == "Error fetching public keys: boom"

    @pytest.mark.asyncio
    async def test_malformed_token(self, clock):
        verifier = PublicKeySignatureVerifier(key_fetcher({}), clock=clock)

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify("not-a-token")

        assert exc_info.value.code == JwtErrorCode.INVALID_ARGUMENT

    def test_requires_key_fetcher(self):
        with pytest.raises(ValueError):
            PublicKeySignatureVerifier(None)

    def test_factories_thread_options(self):
        options = AppOptions(http_timeout=2.5, http_proxy="http://proxy.example.com:3128")

        cert_verifier = PublicKeySignatureVerifier.with_certificate_url("https://keys.example.com/certs", options)
        jwks_verifier = PublicKeySignatureVerifier.with_jwks_url("https://keys.example.com/jwks", options)

        assert isinstance(cert_verifier.key_fetcher, UrlKeyFetcher)
        assert isinstance(jwks_verifier.key_fetcher, JwksKeyFetcher)
        assert cert_verifier.key_fetcher.timeout == 2.5
        assert jwks_verifier.key_fetcher.proxy == "http://proxy.example.com:3128"


class TestEmulatorSignatureVerifier:
    """Test cases for EmulatorSignatureVerifier."""

    @pytest.mark.asyncio
    async def test_accepts_unsigned_token(self):
        verifier = EmulatorSignatureVerifier(clock=FakeClock())

        await verifier.verify(unsigned_token(TestDataFactory.id_token_claims()))

    @pytest.mark.asyncio
    async def test_still_enforces_expiry(self):
        verifier = EmulatorSignatureVerifier(clock=FakeClock(FIXED_NOW + 3600))

        with pytest.raises(JwtError) as exc_info:
            await verifier.verify(unsigned_token(TestDataFactory.id_token_claims()))

        assert exc_info.value.code == JwtErrorCode.TOKEN_EXPIRED


class TestVerifyTimeClaims:
    """Test cases for exp/nbf checks."""

    def test_valid_window(self):
        verify_time_claims({"exp": FIXED_NOW + 1, "nbf": FIXED_NOW}, FIXED_NOW)

    def test_expiry_is_inclusive(self):
        with pytest.raises(JwtError) as exc_info:
            verify_time_claims({"exp": FIXED_NOW}, FIXED_NOW)

        assert exc_info.value.code == JwtErrorCode.TOKEN_EXPIRED

    @pytest.mark.parametrize("claims", [{"exp": "soon"}, {"exp": True}, {"nbf": "later"}])
    def test_non_numeric_time_claims(self, claims):
        with pytest.raises(JwtError) as exc_info:
            verify_time_claims(claims, FIXED_NOW)

        assert exc_info.value.code == JwtErrorCode.INVALID_TOKEN

    def test_not_yet_valid(self):
        with pytest.raises(JwtError) as exc_info:
            verify_time_claims({"nbf": FIXED_NOW + 10}, FIXED_NOW)

        assert exc_info.value.code == JwtErrorCode.INVALID_TOKEN
