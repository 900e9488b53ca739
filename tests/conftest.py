"""Shared pytest fixtures for token validator tests."""

from __future__ import annotations

import time
from typing import Any, Callable

import pytest
from joserfc import jwk

from tests.factories import KID, X5T, MockProvider, MockTime, key_record, make_claims, sign_token


@pytest.fixture(scope="session")
def signing_key() -> jwk.RSAKey:
    """RSA key published by the mock provider under KID and X5T."""
    return jwk.RSAKey.generate_key(2048, private=True)


@pytest.fixture(scope="session")
def other_key() -> jwk.RSAKey:
    """RSA key published under a different identifier."""
    return jwk.RSAKey.generate_key(2048, private=True)


@pytest.fixture
def provider(signing_key: jwk.RSAKey, other_key: jwk.RSAKey) -> MockProvider:
    return MockProvider(
        keys=[
            key_record(other_key, kid="key-0", x5t="thumbprint-0"),
            key_record(signing_key, kid=KID, x5t=X5T),
        ]
    )


@pytest.fixture
def mock_time(monkeypatch: pytest.MonkeyPatch) -> MockTime:
    """Freeze time.time() at a known instant; advance it explicitly."""
    clock = MockTime()
    monkeypatch.setattr(time, "time", clock.time)
    return clock


@pytest.fixture
def token_factory(signing_key: jwk.RSAKey) -> Callable[..., str]:
    """Build tokens signed by the published key."""

    def _factory(header: dict[str, Any] | None = None, **claim_overrides: Any) -> str:
        return sign_token(signing_key, make_claims(**claim_overrides), header)

    return _factory
