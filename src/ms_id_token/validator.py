"""Microsoft identity token validator.

Validator.check runs the full pipeline for one token:

1. Parse the compact token and decode its (untrusted) header.
2. Validate the header and resolve the signing key (cached JWKS).
3. Verify the signature with the pinned algorithm.
4. Decode the payload into claims.
5. Verify required claims, audience and validity window.

Claims are never returned or inspected before step 3 succeeds.
"""

from __future__ import annotations

from typing import Optional

import httpx

from ms_id_token.claims import ClaimVerifier
from ms_id_token.errors import MsIdTokenError
from ms_id_token.jwks import KeyResolver
from ms_id_token.models import Claims, ValidatorConfig
from ms_id_token.observability import get_logger, sanitize_for_logging
from ms_id_token.parser import parse_token
from ms_id_token.signing import verify_signature

logger = get_logger(__name__)


class Validator:
    """Validate identity tokens issued by the Microsoft identity platform.

    One instance owns one signing key cache; share the instance across
    concurrent requests so they share the cache.

    Example:
        >>> validator = Validator(expiry=1800)
        >>> claims = await validator.check(id_token, audience="my-client-id")
        >>> claims["sub"]
    """

    def __init__(
        self,
        config: Optional[ValidatorConfig] = None,
        *,
        expiry: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the validator.

        Args:
            config: Validator configuration; defaults to ValidatorConfig().
            expiry: Key set cache lifetime in seconds; overrides config.expiry.
            transport: Optional httpx transport for testing.
        """
        config = config or ValidatorConfig()
        if expiry is not None:
            config = ValidatorConfig(**{**config.model_dump(), "expiry": expiry})
        self.config = config
        self.key_resolver = KeyResolver(
            config_uri=config.config_uri,
            expiry=config.expiry,
            timeout=config.http_timeout,
            transport=transport,
        )
        self.claim_verifier = ClaimVerifier(tenant_id=config.tenant_id)

    async def check(self, token: str, audience: str) -> Claims:
        """Validate ``token`` for ``audience`` and return its claims.

        Args:
            token: Raw compact JWT.
            audience: Expected ``aud`` claim (e.g. the application's client id).

        Returns:
            The token's claims, unchanged.

        Raises:
            MsIdTokenError: One subclass per failure kind (malformed token,
                header or claims, key discovery/fetch failures, unknown key,
                bad signature, audience mismatch, expired, not yet valid).
        """
        try:
            parsed = parse_token(token)
            key = await self.key_resolver.resolve(parsed.header)
            claims = verify_signature(parsed.token, key)
            self.claim_verifier.verify(claims, audience)
        except MsIdTokenError as e:
            logger.info("ms_id_token.validator.rejected", code=e.code, reason=e.message)
            raise

        logger.debug("ms_id_token.validator.accepted", claims=sanitize_for_logging(claims))
        return claims
