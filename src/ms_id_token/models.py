"""Pydantic models for validator configuration and provider metadata.

All models inherit from MsIdTokenBaseModel to ensure consistent behavior:
- Immutability (frozen=True) so a config can be shared across tasks
- Strict validation (extra="forbid") to catch typos in configuration
"""

from __future__ import annotations

import os
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ms_id_token.constants import (
    CACHED_KEYS_EXPIRY_SECONDS,
    DEFAULT_HTTP_TIMEOUT,
    MS_CONFIG_URI,
)

# Environment variable names
ENV_CACHE_EXPIRY = "MS_ID_TOKEN_CACHE_EXPIRY"
ENV_CONFIG_URI = "MS_ID_TOKEN_CONFIG_URI"
ENV_HTTP_TIMEOUT = "MS_ID_TOKEN_HTTP_TIMEOUT"
ENV_TENANT_ID = "MS_ID_TOKEN_TENANT_ID"

# Type alias for decoded JWT claims
Claims = dict[str, Any]


class MsIdTokenBaseModel(BaseModel):
    """Base model for configuration and metadata objects."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )


class ValidatorConfig(MsIdTokenBaseModel):
    """Configuration for a Validator instance.

    Attributes:
        expiry: Lifetime of the cached key set in seconds.
        config_uri: URL of the provider's OpenID configuration document.
        http_timeout: Timeout in seconds for each discovery/JWKS request.
        tenant_id: Optional trusted tenant. When set, the issuer tenant and the
            ``tid`` claim must both equal it.

    Example:
        >>> config = ValidatorConfig(expiry=1800)
        >>> config.expiry
        1800.0
    """

    expiry: float = Field(default=CACHED_KEYS_EXPIRY_SECONDS, gt=0)
    config_uri: str = Field(default=MS_CONFIG_URI, min_length=1)
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)
    tenant_id: Optional[str] = Field(default=None, min_length=1)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ValidatorConfig":
        """Build a config from MS_ID_TOKEN_* environment variables.

        Unset variables fall back to the model defaults; keyword overrides
        win over both.
        """
        values: dict[str, Any] = {}
        expiry = os.environ.get(ENV_CACHE_EXPIRY, "").strip()
        if expiry:
            values["expiry"] = expiry
        config_uri = os.environ.get(ENV_CONFIG_URI, "").strip()
        if config_uri:
            values["config_uri"] = config_uri
        timeout = os.environ.get(ENV_HTTP_TIMEOUT, "").strip()
        if timeout:
            values["http_timeout"] = timeout
        tenant_id = os.environ.get(ENV_TENANT_ID, "").strip()
        if tenant_id:
            values["tenant_id"] = tenant_id
        values.update(overrides)
        return cls(**values)


class ProviderConfig(BaseModel):
    """Subset of the provider's OpenID configuration document.

    Only ``jwks_uri`` is read; every other metadata field is ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    jwks_uri: str = Field(..., min_length=1, description="JWKS endpoint URL")


class KeyIdentifier(MsIdTokenBaseModel):
    """Key identifier taken from the token header.

    Exactly one of ``kid`` (key ID) or ``x5t`` (certificate thumbprint) is
    present in a valid header; ``kind`` records which one so that it is only
    matched against key records' field of the same name.
    """

    kind: Literal["kid", "x5t"]
    value: str = Field(..., min_length=1)

    def matches(self, record: dict[str, Any]) -> bool:
        """Return True if the JWKS record carries the same identifier."""
        return record.get(self.kind) == self.value
