"""Microsoft identity token validation.

Validates JWT-format ID tokens issued by the Microsoft identity platform:
RS256 signature against the provider's published signing keys (discovered
and cached), required claims, audience and validity window.

Public exports:
    Validator: Validates a token and returns its claims
    ValidatorConfig: Validator configuration (cache expiry, endpoints, tenant)
    Claims: Decoded claims type alias
    MsIdTokenError: Base class of every validation error
    MalformedTokenError ... TokenNotYetValidError: One class per failure kind
"""

from ms_id_token.errors import (
    AudienceMismatchError,
    BadKeySetFormatError,
    ConfigFetchFailedError,
    KeyNotFoundError,
    KeysFetchFailedError,
    KeysUriNotFoundError,
    MalformedClaimsError,
    MalformedHeaderError,
    MalformedTokenError,
    MsIdTokenError,
    SignatureVerificationFailedError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from ms_id_token.models import Claims, ValidatorConfig
from ms_id_token.validator import Validator

__version__ = "0.1.0"

__all__ = [
    "AudienceMismatchError",
    "BadKeySetFormatError",
    "Claims",
    "ConfigFetchFailedError",
    "KeyNotFoundError",
    "KeysFetchFailedError",
    "KeysUriNotFoundError",
    "MalformedClaimsError",
    "MalformedHeaderError",
    "MalformedTokenError",
    "MsIdTokenError",
    "SignatureVerificationFailedError",
    "TokenExpiredError",
    "TokenNotYetValidError",
    "Validator",
    "ValidatorConfig",
    "__version__",
]
