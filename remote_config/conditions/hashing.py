"""
Stable hashing of seeded randomization ids for percent conditions.

Buckets must match the other SDKs bit for bit, so the hash is FarmHash
Fingerprint64 read as a signed 64-bit integer.
"""

import farmhash

MICRO_PERCENT_SCALE = 100 * 1_000_000

_INT64_SIGN_BIT = 1 << 63
_UINT64_RANGE = 1 << 64


def seeded_randomization_id(seed, randomization_id: str) -> str:
    prefix = f"{seed}." if seed else ""
    return f"{prefix}{randomization_id}"


def hash_seeded_randomization_id(value: str) -> int:
    """Absolute value of the signed Fingerprint64 of ``value``.

    The most negative int64 has no positive counterpart in 64 bits; here it
    maps to 2**63.
    """
    unsigned = farmhash.fingerprint64(value)
    signed = unsigned - _UINT64_RANGE if unsigned >= _INT64_SIGN_BIT else unsigned
    return abs(signed)


def micro_percentile(value: str) -> int:
    """Bucket of ``value`` on the micro-percent scale, in [0, 100_000_000)."""
    return hash_seeded_randomization_id(value) % MICRO_PERCENT_SCALE
