"""OpenID Connect discovery for the identity provider.

Fetches the provider configuration from its well-known endpoint
(/.well-known/openid-configuration) to locate the JWKS endpoint. The
document is not cached: it is fetched again every time the signing key
cache needs repopulating.
"""

from __future__ import annotations

from typing import Optional

import httpx

from ms_id_token.constants import DEFAULT_HTTP_TIMEOUT
from ms_id_token.errors import ConfigFetchFailedError, KeysUriNotFoundError
from ms_id_token.models import ProviderConfig
from ms_id_token.observability import get_logger
from ms_id_token.utils import get_json

logger = get_logger(__name__)


async def fetch_provider_config(
    config_uri: str,
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderConfig:
    """Fetch and parse the provider's OpenID configuration document.

    Args:
        config_uri: Well-known configuration URL.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport for testing.

    Returns:
        ProviderConfig with the JWKS endpoint URL.

    Raises:
        ConfigFetchFailedError: On network errors, timeouts, non-2xx status,
            or a body that is not a JSON object.
        KeysUriNotFoundError: If the document has no ``jwks_uri`` string.
    """
    async with httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(timeout)) as client:
        try:
            data = await get_json(client, config_uri)
        except httpx.HTTPStatusError as e:
            raise ConfigFetchFailedError(
                config_uri,
                f"HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ConfigFetchFailedError(config_uri, type(e).__name__) from e
        except ValueError as e:
            raise ConfigFetchFailedError(config_uri, "response is not valid JSON") from e

    if not isinstance(data, dict):
        raise ConfigFetchFailedError(config_uri, "response is not a JSON object")

    jwks_uri = data.get("jwks_uri")
    if not jwks_uri or not isinstance(jwks_uri, str):
        raise KeysUriNotFoundError(config_uri)

    config = ProviderConfig(jwks_uri=jwks_uri)
    logger.info("ms_id_token.oidc.discovered", config_uri=config_uri, jwks_uri=config.jwks_uri)
    return config
