"""Constants for Microsoft identity token validation.

This module defines the pinned token parameters and provider endpoints
used across the validator.
"""

# Provider discovery document (multi-tenant "common" endpoint, v2.0)
MS_CONFIG_URI = "https://login.microsoftonline.com/common/v2.0/.well-known/openid-configuration"

# Pinned header values; no algorithm negotiation
TOKEN_TYPE = "JWT"
TOKEN_ALGORITHM = "RS256"

CACHED_KEYS_EXPIRY_SECONDS = 3600.0
"""Default lifetime of the cached signing key set.

The key set is refetched (discovery + JWKS) on the first resolution at or
after ``fetched_at + expiry``.
"""

DEFAULT_HTTP_TIMEOUT = 10.0
"""Timeout in seconds applied to discovery and JWKS requests."""

# Header fields that may identify the signing key
KEY_ID_FIELDS = ("kid", "x5t")

REQUIRED_CLAIMS = ("aud", "exp", "nbf", "sub", "iss", "iat", "tid")
"""Claims that must be present and non-null in every accepted token."""

ISSUER_PATTERN = r"https://login\.microsoftonline\.com/([^/]+)/v2\.0"
"""Full-match issuer URL pattern; the captured group is the tenant identifier."""
