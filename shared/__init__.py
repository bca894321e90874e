"""
Shared utilities for the token verification SDK.

This package aggregates common building blocks consumed by every component:

- config: SDK configuration via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus counters for verification and key fetching
- errors: Canonical error types and responses
- circuit_breaker: Protection for calls to public key sources

Component packages (token_auth, remote_config) import from here; nothing in
shared/ imports from them.
"""
