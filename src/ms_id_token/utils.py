"""Shared HTTP helpers for discovery and JWKS fetches."""

from __future__ import annotations

from typing import Any

import httpx


async def get_json(client: httpx.AsyncClient, url: str) -> Any:
    """GET ``url`` and return the decoded JSON body.

    Raises:
        httpx.HTTPError: On network errors, timeouts or non-2xx status.
        ValueError: If the body is not valid JSON.
    """
    resp = await client.get(url, headers={"Accept": "application/json"})
    resp.raise_for_status()
    return resp.json()
