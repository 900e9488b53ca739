"""Signing key resolution for identity tokens.

Tokens name their signing key (``kid`` or ``x5t``) but do not carry it.
KeyResolver locates the provider's JWKS endpoint through OIDC discovery,
fetches the key set, caches it for a configurable expiry and picks the
key whose identifier matches the token header.

Cache refresh is single-flight: the first resolution that finds the cache
stale starts one refresh task, and every resolution arriving while it runs
awaits that same task, sharing its keys or its error. Fresh reads never
wait.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from joserfc import jwk
from joserfc.errors import JoseError

from ms_id_token.constants import (
    CACHED_KEYS_EXPIRY_SECONDS,
    DEFAULT_HTTP_TIMEOUT,
    KEY_ID_FIELDS,
    MS_CONFIG_URI,
    TOKEN_ALGORITHM,
    TOKEN_TYPE,
)
from ms_id_token.errors import (
    BadKeySetFormatError,
    KeyNotFoundError,
    KeysFetchFailedError,
    MalformedHeaderError,
)
from ms_id_token.models import KeyIdentifier
from ms_id_token.observability import get_logger
from ms_id_token.oidc import fetch_provider_config
from ms_id_token.utils import get_json

logger = get_logger(__name__)

# Type alias for a raw JWKS key record
KeyRecord = dict[str, Any]


def parse_key_identifier(header: dict[str, Any]) -> KeyIdentifier:
    """Validate the pinned header fields and extract the key identifier.

    Args:
        header: Decoded JOSE header.

    Returns:
        KeyIdentifier tagged with the header field it came from.

    Raises:
        MalformedHeaderError: If ``typ`` or ``alg`` differ from the pinned
            values, or the header does not carry exactly one non-empty
            ``kid``/``x5t``.
    """
    if header.get("typ") != TOKEN_TYPE:
        raise MalformedHeaderError(
            f"typ must be {TOKEN_TYPE!r}", details={"typ": header.get("typ")}
        )
    if header.get("alg") != TOKEN_ALGORITHM:
        raise MalformedHeaderError(
            f"alg must be {TOKEN_ALGORITHM!r}", details={"alg": header.get("alg")}
        )

    present = [name for name in KEY_ID_FIELDS if header.get(name) is not None]
    if len(present) != 1:
        raise MalformedHeaderError(
            "exactly one of kid or x5t is required", details={"present": present}
        )

    kind = present[0]
    value = header[kind]
    if not isinstance(value, str) or not value:
        raise MalformedHeaderError(f"{kind} must be a non-empty string")
    return KeyIdentifier(kind=kind, value=value)


async def fetch_key_set(
    jwks_uri: str,
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[KeyRecord, ...]:
    """Fetch the JWKS document and return its key records.

    Args:
        jwks_uri: URL of the JWKS endpoint (from OIDC discovery).
        timeout: Request timeout in seconds.
        transport: Optional httpx transport for testing.

    Returns:
        Key records in published order.

    Raises:
        KeysFetchFailedError: On network errors, timeouts or non-2xx status.
        BadKeySetFormatError: If the body is not JSON or has no ``keys`` list
            of objects.
    """
    async with httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(timeout)) as client:
        try:
            data = await get_json(client, jwks_uri)
        except httpx.HTTPStatusError as e:
            raise KeysFetchFailedError(
                jwks_uri,
                f"HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise KeysFetchFailedError(jwks_uri, type(e).__name__) from e
        except ValueError as e:
            raise BadKeySetFormatError("response is not valid JSON") from e

    if not isinstance(data, dict):
        raise BadKeySetFormatError("response is not a JSON object")
    keys = data.get("keys")
    if not isinstance(keys, list):
        raise BadKeySetFormatError("'keys' is missing or not a list")
    if not all(isinstance(record, dict) for record in keys):
        raise BadKeySetFormatError("'keys' entries must be JSON objects")

    logger.info("ms_id_token.jwks.fetched", uri=jwks_uri, key_count=len(keys))
    return tuple(keys)


@dataclass(frozen=True)
class _KeySetEntry:
    """Fetched key set and the time (epoch seconds) it was fetched."""

    keys: tuple[KeyRecord, ...]
    fetched_at: float


class KeyCache:
    """Single cached key set with its fetch timestamp.

    Empty at construction. ``store`` replaces the whole entry with one
    reference assignment, so a reader sees either the old or the new key
    set, never a mix.
    """

    def __init__(self) -> None:
        self._entry: Optional[_KeySetEntry] = None

    @property
    def key_set(self) -> Optional[tuple[KeyRecord, ...]]:
        entry = self._entry
        return entry.keys if entry is not None else None

    @property
    def fetched_at(self) -> Optional[float]:
        entry = self._entry
        return entry.fetched_at if entry is not None else None

    def is_stale(self, now: float, expiry: float) -> bool:
        """Stale if never populated or ``now - fetched_at >= expiry``."""
        return self.get(now, expiry) is None

    def get(self, now: float, expiry: float) -> Optional[tuple[KeyRecord, ...]]:
        """Return the cached keys if still fresh at ``now``, else None."""
        entry = self._entry
        if entry is None or now - entry.fetched_at >= expiry:
            return None
        return entry.keys

    def store(self, keys: tuple[KeyRecord, ...], now: float) -> None:
        self._entry = _KeySetEntry(keys=keys, fetched_at=now)

    def invalidate(self) -> None:
        """Drop the cached key set; the next resolution refetches."""
        self._entry = None


class KeyResolver:
    """Resolve token headers to RSA verification keys.

    Example:
        >>> resolver = KeyResolver(expiry=1800)
        >>> key = await resolver.resolve({"typ": "JWT", "alg": "RS256", "kid": "abc"})
    """

    def __init__(
        self,
        *,
        config_uri: str = MS_CONFIG_URI,
        expiry: float = CACHED_KEYS_EXPIRY_SECONDS,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            config_uri: Provider's OpenID configuration URL.
            expiry: Key set cache lifetime in seconds.
            timeout: Timeout in seconds for each HTTP request.
            transport: Optional httpx transport for testing.
        """
        self._config_uri = config_uri
        self._expiry = expiry
        self._timeout = timeout
        self._transport = transport
        self.cache = KeyCache()
        self._refresh_task: Optional[asyncio.Task[tuple[KeyRecord, ...]]] = None

    @property
    def expiry(self) -> float:
        return self._expiry

    async def get_key_set(self) -> tuple[KeyRecord, ...]:
        """Return the current key set, refreshing it if stale.

        Raises:
            ConfigFetchFailedError: Discovery document unreachable or unparsable.
            KeysUriNotFoundError: Discovery document lacks ``jwks_uri``.
            KeysFetchFailedError: JWKS endpoint unreachable.
            BadKeySetFormatError: JWKS response lacks a valid ``keys`` list.
        """
        keys = self.cache.get(time.time(), self._expiry)
        if keys is not None:
            logger.debug("ms_id_token.jwks.cache_hit", key_count=len(keys))
            return keys

        # No await between the check and the assignment, so only one task
        # per staleness episode is ever created.
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._refresh())
            self._refresh_task.add_done_callback(self._refresh_done)

        # Shielded so a cancelled caller does not cancel the other waiters.
        return await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> tuple[KeyRecord, ...]:
        provider = await fetch_provider_config(
            self._config_uri, timeout=self._timeout, transport=self._transport
        )
        keys = await fetch_key_set(
            provider.jwks_uri, timeout=self._timeout, transport=self._transport
        )
        self.cache.store(keys, time.time())
        return keys

    def _refresh_done(self, task: asyncio.Task[tuple[KeyRecord, ...]]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                "ms_id_token.jwks.refresh_failed", error=type(task.exception()).__name__
            )

    async def resolve(self, header: dict[str, Any]) -> jwk.RSAKey:
        """Return the verification key named by the token header.

        Args:
            header: Decoded, untrusted JOSE header.

        Returns:
            RSA public key for the matching JWKS record.

        Raises:
            MalformedHeaderError: Header fails the typ/alg/key identifier check.
            KeyNotFoundError: No record carries the header's identifier.
            BadKeySetFormatError: The matching record is not a usable RSA key.
            ConfigFetchFailedError, KeysUriNotFoundError, KeysFetchFailedError:
                Propagated from the key set refresh.
        """
        key_id = parse_key_identifier(header)
        keys = await self.get_key_set()

        for record in keys:
            if key_id.matches(record):
                return _import_rsa_key(record, key_id)

        raise KeyNotFoundError(key_id.kind, key_id.value)


def _import_rsa_key(record: KeyRecord, key_id: KeyIdentifier) -> jwk.RSAKey:
    if record.get("kty") != "RSA":
        raise BadKeySetFormatError(
            f"key {key_id.kind}={key_id.value!r} is not an RSA key",
            details={"kty": record.get("kty")},
        )
    try:
        return jwk.RSAKey.import_key(record)
    except (JoseError, ValueError, TypeError, KeyError) as e:
        raise BadKeySetFormatError(
            f"key {key_id.kind}={key_id.value!r} cannot be imported: {e}"
        ) from e
