"""Claim checks for signature-verified identity tokens.

Checks run in a fixed order so the reported error is deterministic:
structure, then audience, then expiry, then not-before.
"""

from __future__ import annotations

import re
import time
from typing import Any, Optional

from ms_id_token.constants import ISSUER_PATTERN, REQUIRED_CLAIMS
from ms_id_token.errors import (
    AudienceMismatchError,
    MalformedClaimsError,
    TokenExpiredError,
    TokenNotYetValidError,
)

_ISSUER_RE = re.compile(ISSUER_PATTERN)


def issuer_tenant(iss: Any) -> Optional[str]:
    """Return the tenant embedded in a provider issuer URL, or None."""
    if not isinstance(iss, str):
        return None
    match = _ISSUER_RE.fullmatch(iss)
    return match.group(1) if match else None


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ClaimVerifier:
    """Verify required claims, audience and validity window.

    Attributes:
        tenant_id: Optional trusted tenant; when set, both the issuer tenant
            and the ``tid`` claim must equal it.
    """

    def __init__(self, tenant_id: Optional[str] = None) -> None:
        self.tenant_id = tenant_id

    def check_structure(self, claims: dict[str, Any]) -> None:
        """Raise MalformedClaimsError unless all required claims are well formed."""
        missing = [name for name in REQUIRED_CLAIMS if claims.get(name) is None]
        if missing:
            raise MalformedClaimsError(
                f"missing required claims: {', '.join(missing)}", missing=missing
            )

        tenant = issuer_tenant(claims["iss"])
        if tenant is None:
            raise MalformedClaimsError("issuer does not match provider pattern")

        for name in ("exp", "nbf"):
            if not _is_timestamp(claims[name]):
                raise MalformedClaimsError(f"{name} must be a numeric timestamp")

        if self.tenant_id is not None and (
            tenant != self.tenant_id or claims["tid"] != self.tenant_id
        ):
            raise MalformedClaimsError(
                "token was not issued by the trusted tenant",
                details={"issuer_tenant": tenant, "tid": claims["tid"]},
            )

    def verify(
        self,
        claims: dict[str, Any],
        audience: str,
        now: Optional[int] = None,
    ) -> None:
        """Verify decoded claims against the expected audience and current time.

        Args:
            claims: Claims decoded from a signature-verified token.
            audience: Expected ``aud`` value (exact string equality).
            now: Validation time in epoch seconds; defaults to the current time.

        Raises:
            MalformedClaimsError: Required claim missing or issuer mismatch.
            AudienceMismatchError: ``aud`` differs from ``audience``.
            TokenExpiredError: ``exp`` is at or before ``now``.
            TokenNotYetValidError: ``nbf`` is after ``now``.
        """
        self.check_structure(claims)

        if claims["aud"] != audience:
            raise AudienceMismatchError(audience, claims["aud"])

        current_time = int(time.time()) if now is None else now

        if claims["exp"] <= current_time:
            raise TokenExpiredError(claims["exp"], current_time)

        if claims["nbf"] > current_time:
            raise TokenNotYetValidError(claims["nbf"], current_time)
