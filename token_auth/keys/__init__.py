"""
Public key sources.

Contains logic for retrieving and caching the public keys used to verify
token signatures. Two sources are supported:

- UrlKeyFetcher: a URL serving ``{kid: PEM}`` whose ``Cache-Control: max-age``
  drives the cache lifetime.
- JwksKeyFetcher: a JWKS document cached for a fixed TTL (6 hours by default)
  regardless of response headers.

Each fetcher owns its cache. A refresh builds a complete new key map and
swaps it in only after the fetch succeeded, so concurrent readers never see a
partial map.
"""

from token_auth.keys.fetcher import JwksKeyFetcher, KeyFetcher, UrlKeyFetcher

__all__ = ["KeyFetcher", "UrlKeyFetcher", "JwksKeyFetcher"]
