"""
Structural decoding of compact JWTs (``header.payload.signature``).

Nothing here checks signatures or claims; see ``token_auth.jwt.signature``
and ``token_auth.validation.claims`` for that.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict

from jose import jwt
from jose.exceptions import JWTError
from jose.utils import base64url_decode, base64url_encode

from token_auth.jwt.errors import JwtError, JwtErrorCode


@dataclass(frozen=True)
class DecodedToken:
    """Header and payload of a compact token, plus the raw signing material."""

    header: Dict[str, Any]
    payload: Dict[str, Any]
    signing_input: bytes = field(default=b"", repr=False)
    signature: bytes = field(default=b"", repr=False)


def decode_jwt(token: Any) -> DecodedToken:
    """Decode a compact token without verifying it."""
    if not isinstance(token, str):
        raise JwtError(JwtErrorCode.INVALID_ARGUMENT, "The provided token must be a string.")

    if token.count(".") != 2:
        raise JwtError(JwtErrorCode.INVALID_ARGUMENT, "Decoding token failed.")

    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.get_unverified_claims(token)
        signing_input, _, signature_segment = token.rpartition(".")
        signing_bytes = signing_input.encode("ascii")
        signature = base64url_decode(signature_segment.encode("ascii"))
    except (JWTError, ValueError) as exc:
        raise JwtError(JwtErrorCode.INVALID_ARGUMENT, "Decoding token failed.") from exc

    return DecodedToken(
        header=dict(header),
        payload=dict(payload),
        signing_input=signing_bytes,
        signature=signature,
    )


def encode_jwt(header: Dict[str, Any], payload: Dict[str, Any], signature: bytes = b"") -> str:
    """Serialize header, payload and signature bytes into a compact token."""
    segments = [
        base64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8")),
        base64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")),
        base64url_encode(signature),
    ]
    return b".".join(segments).decode("ascii")
