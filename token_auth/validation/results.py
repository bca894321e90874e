"""
Typed wrappers around verified token claims.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Union


class DecodedClaims(Mapping[str, Any]):
    """Read-only view of a verified token's payload."""

    def __init__(self, claims: Mapping[str, Any]):
        self._claims: Dict[str, Any] = dict(claims)

    @property
    def claims(self) -> Dict[str, Any]:
        return dict(self._claims)

    def __getitem__(self, key: str) -> Any:
        return self._claims[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._claims!r})"

    @property
    def sub(self) -> Optional[str]:
        return self._claims.get("sub")

    @property
    def iss(self) -> Optional[str]:
        return self._claims.get("iss")

    @property
    def aud(self) -> Union[str, List[str], None]:
        return self._claims.get("aud")

    @property
    def exp(self) -> Optional[float]:
        return self._claims.get("exp")

    @property
    def iat(self) -> Optional[float]:
        return self._claims.get("iat")


class DecodedIdToken(DecodedClaims):
    """ID token or session cookie claims; ``uid`` mirrors ``sub``."""

    @property
    def uid(self) -> Optional[str]:
        return self.sub


class DecodedAppCheckToken(DecodedClaims):
    """App Check token claims; ``app_id`` mirrors ``sub``."""

    @property
    def app_id(self) -> Optional[str]:
        return self.sub


class PhoneNumberToken(DecodedClaims):
    """Phone number verification token claims."""

    def get_phone_number(self) -> Optional[str]:
        return self.sub
