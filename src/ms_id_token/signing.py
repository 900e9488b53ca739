"""JWS signature verification for identity tokens.

The payload is decoded only after the signature covering it verifies, and
only with the pinned algorithm; the ``alg`` named in the header cannot
select anything else.
"""

from __future__ import annotations

import json

from joserfc import jws
from joserfc import jwk
from joserfc.errors import JoseError

from ms_id_token.constants import TOKEN_ALGORITHM
from ms_id_token.errors import MalformedClaimsError, SignatureVerificationFailedError
from ms_id_token.models import Claims


def verify_signature(token: str, key: jwk.RSAKey) -> Claims:
    """Verify the token's signature and return the decoded claims.

    Args:
        token: Raw compact JWT.
        key: Verification key from KeyResolver.resolve().

    Returns:
        Decoded claims dict.

    Raises:
        SignatureVerificationFailedError: Bad signature, wrong key, tampered
            header or payload, or an algorithm other than the pinned one.
        MalformedClaimsError: Signature is valid but the payload is not a
            JSON object.
    """
    try:
        obj = jws.deserialize_compact(token, key, algorithms=[TOKEN_ALGORITHM])
    except (JoseError, ValueError) as e:
        raise SignatureVerificationFailedError(
            f"Signature verification failed: {type(e).__name__}",
            details={"error": str(e)},
        ) from e

    try:
        claims = json.loads(obj.payload)
    except ValueError as e:
        raise MalformedClaimsError("payload is not valid JSON") from e
    if not isinstance(claims, dict):
        raise MalformedClaimsError("payload is not a JSON object")
    return claims
