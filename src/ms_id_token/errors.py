"""Error taxonomy for Microsoft identity token validation.

Every failure of ``Validator.check`` surfaces as exactly one of the
subclasses below, so callers can tell an expired token apart from a
provider outage. All errors carry a stable code, a human-readable message
and optional details.
"""
from __future__ import annotations

from typing import Any


class MsIdTokenError(Exception):
    """Base exception for all token validation errors.

    Attributes:
        code: Error code following the ms_id_token:<area>/<kind> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class MalformedTokenError(MsIdTokenError):
    """Raised when the token is not a three-segment compact JWT.

    Covers missing payload or signature segments and a header segment that
    cannot be base64url/JSON decoded.
    """

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:token/malformed",
            message=f"Malformed token: {reason}",
            details=details or {},
        )
        self.reason = reason


class MalformedHeaderError(MsIdTokenError):
    """Raised when the header fails the typ/alg/key identifier check."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:header/malformed",
            message=f"Malformed token header: {reason}",
            details=details or {},
        )
        self.reason = reason


class MalformedClaimsError(MsIdTokenError):
    """Raised when a required claim is missing or the issuer does not match.

    Attributes:
        missing: Names of required claims that were absent or null
    """

    def __init__(
        self,
        reason: str,
        missing: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details_dict: dict[str, Any] = {}
        if missing:
            details_dict["missing"] = list(missing)
        if details:
            details_dict.update(details)
        super().__init__(
            code="ms_id_token:claims/malformed",
            message=f"Malformed token claims: {reason}",
            details=details_dict,
        )
        self.reason = reason
        self.missing = list(missing or [])


class ConfigFetchFailedError(MsIdTokenError):
    """Raised when the discovery document is unreachable or unparsable."""

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:discovery/config_fetch_failed",
            message=f"Unable to fetch provider configuration from {url}: {reason}",
            details={"url": url, "reason": reason, **(details or {})},
        )
        self.url = url
        self.reason = reason


class KeysUriNotFoundError(MsIdTokenError):
    """Raised when the discovery document has no usable ``jwks_uri``."""

    def __init__(self, url: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:discovery/keys_uri_not_found",
            message=f"Provider configuration at {url} has no jwks_uri",
            details={"url": url, **(details or {})},
        )
        self.url = url


class KeysFetchFailedError(MsIdTokenError):
    """Raised when the JWKS endpoint is unreachable or returns non-2xx."""

    def __init__(self, url: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:jwks/keys_fetch_failed",
            message=f"Unable to fetch signing keys from {url}: {reason}",
            details={"url": url, "reason": reason, **(details or {})},
        )
        self.url = url
        self.reason = reason


class BadKeySetFormatError(MsIdTokenError):
    """Raised when the JWKS response lacks a valid ``keys`` sequence."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:jwks/bad_key_set_format",
            message=f"Bad key set format: {reason}",
            details=details or {},
        )
        self.reason = reason


class KeyNotFoundError(MsIdTokenError):
    """Raised when no published key matches the header's key identifier.

    Attributes:
        kind: Identifier type that was searched ("kid" or "x5t")
        value: Identifier value from the token header
    """

    def __init__(self, kind: str, value: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:jwks/key_not_found",
            message=f"No signing key found for {kind}={value!r}",
            details={"kind": kind, "value": value, **(details or {})},
        )
        self.kind = kind
        self.value = value


class SignatureVerificationFailedError(MsIdTokenError):
    """Bad signature, wrong key or tampered payload; see message for cause."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:signature/verification_failed",
            message=message,
            details=details or {},
        )


class AudienceMismatchError(MsIdTokenError):
    """Raised when the ``aud`` claim differs from the expected audience."""

    def __init__(self, expected: str, actual: Any, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:claims/audience_mismatch",
            message=f"Token audience does not match expected audience {expected!r}",
            details={"expected": expected, "actual": actual, **(details or {})},
        )
        self.expected = expected
        self.actual = actual


class TokenExpiredError(MsIdTokenError):
    """Raised when ``exp`` is in the past.

    Attributes:
        exp: The token's expiry (epoch seconds)
        now: Validation time (epoch seconds)
    """

    def __init__(self, exp: int, now: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:claims/token_expired",
            message=f"Token expired at {exp} (now {now})",
            details={"exp": exp, "now": now, **(details or {})},
        )
        self.exp = exp
        self.now = now


class TokenNotYetValidError(MsIdTokenError):
    """Raised when ``nbf`` is in the future."""

    def __init__(self, nbf: int, now: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="ms_id_token:claims/token_not_yet_valid",
            message=f"Token not valid before {nbf} (now {now})",
            details={"nbf": nbf, "now": now, **(details or {})},
        )
        self.nbf = nbf
        self.now = now
