"""Compact JWT parsing.

Splits a wire-format token into its three segments and decodes the header.
Nothing returned here is trusted: the payload stays encoded until the
signature covering it has been verified.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any

from ms_id_token.errors import MalformedTokenError

SEGMENT_COUNT = 3


@dataclass(frozen=True)
class ParsedToken:
    """Token split into its segments with a decoded (untrusted) header.

    Attributes:
        token: Original compact serialization.
        header: Decoded JOSE header.
        payload_segment: Base64url-encoded payload, not yet decoded.
        signature_segment: Base64url-encoded signature.
    """

    token: str
    header: dict[str, Any]
    payload_segment: str
    signature_segment: str


def b64url_decode(segment: str) -> bytes:
    """Decode an unpadded base64url segment."""
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def parse_token(token: str) -> ParsedToken:
    """Split a compact JWT and decode its header.

    Args:
        token: Raw token string (header.payload.signature).

    Returns:
        ParsedToken with the decoded header and the still-encoded payload.

    Raises:
        MalformedTokenError: If a segment is missing or empty, or the header
            is not base64url-encoded JSON object.
    """
    if not isinstance(token, str) or not token:
        raise MalformedTokenError("token must be a non-empty string")

    parts = token.split(".")
    if len(parts) != SEGMENT_COUNT:
        raise MalformedTokenError(
            f"expected {SEGMENT_COUNT} segments, got {len(parts)}",
            details={"segments": len(parts)},
        )
    encoded_header, payload_segment, signature_segment = parts
    if not encoded_header:
        raise MalformedTokenError("header segment is empty")
    if not payload_segment:
        raise MalformedTokenError("payload segment is empty")
    if not signature_segment:
        raise MalformedTokenError("signature segment is empty")

    try:
        header = json.loads(b64url_decode(encoded_header))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise MalformedTokenError(f"header is not valid base64url JSON: {e}") from e

    if not isinstance(header, dict):
        raise MalformedTokenError("header is not a JSON object")

    return ParsedToken(
        token=token,
        header=header,
        payload_segment=payload_segment,
        signature_segment=signature_segment,
    )
