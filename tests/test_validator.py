"""End-to-end tests for Validator.check against a mock identity provider."""

import asyncio
import json
from typing import Callable

import httpx
import pytest
from joserfc import jwk

import ms_id_token
from ms_id_token import (
    AudienceMismatchError,
    BadKeySetFormatError,
    ConfigFetchFailedError,
    KeyNotFoundError,
    KeysFetchFailedError,
    KeysUriNotFoundError,
    MalformedClaimsError,
    MalformedHeaderError,
    MalformedTokenError,
    SignatureVerificationFailedError,
    TokenExpiredError,
    TokenNotYetValidError,
    Validator,
    ValidatorConfig,
)
from ms_id_token.parser import b64url_decode
from tests.factories import (
    AUDIENCE,
    KID,
    TENANT_ID,
    X5T,
    MockProvider,
    MockTime,
    encode_segment,
    make_claims,
    sign_token,
    unsigned_token,
)


def test_has_a_version_number() -> None:
    assert ms_id_token.__version__


class TestValidTokens:
    """Correctly signed tokens inside their validity window."""

    async def test_returns_exact_claims(
        self, provider: MockProvider, signing_key: jwk.RSAKey
    ) -> None:
        claims = make_claims()
        token = sign_token(signing_key, claims)
        validator = Validator(transport=provider.transport)

        assert await validator.check(token, AUDIENCE) == claims

    async def test_accepts_x5t_header(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        token = token_factory(header={"typ": "JWT", "alg": "RS256", "x5t": X5T})
        validator = Validator(transport=provider.transport)

        claims = await validator.check(token, AUDIENCE)

        assert claims["tid"] == TENANT_ID

    async def test_token_valid_from_now_is_accepted(
        self, provider: MockProvider, mock_time: MockTime, token_factory: Callable[..., str]
    ) -> None:
        now = int(mock_time.current)
        token = token_factory(nbf=now)
        validator = Validator(transport=provider.transport)

        claims = await validator.check(token, AUDIENCE)

        assert claims["nbf"] == now

    async def test_trusted_tenant(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        validator = Validator(ValidatorConfig(tenant_id=TENANT_ID), transport=provider.transport)

        await validator.check(token_factory(), AUDIENCE)

        with pytest.raises(MalformedClaimsError):
            await validator.check(token_factory(tid="other-tenant"), AUDIENCE)


class TestRejectedTokens:
    """Each failure surfaces as its own error kind."""

    @pytest.mark.parametrize("token", ["dummy_token", "header.payload", "a..c", ""])
    async def test_malformed_token_fails_before_network(
        self, provider: MockProvider, token: str
    ) -> None:
        validator = Validator(transport=provider.transport)

        with pytest.raises(MalformedTokenError):
            await validator.check(token, AUDIENCE)

        assert provider.calls == {"config": 0, "keys": 0}

    @pytest.mark.parametrize(
        "header",
        [
            {"typ": "JWT", "alg": "none", "kid": KID},
            {"typ": "JWT", "alg": "HS256", "kid": KID},
            {"typ": "at+jwt", "alg": "RS256", "kid": KID},
            {"typ": "JWT", "alg": "RS256"},
            {"typ": "JWT", "alg": "RS256", "kid": KID, "x5t": X5T},
        ],
    )
    async def test_malformed_header(self, provider: MockProvider, header: dict) -> None:
        validator = Validator(transport=provider.transport)

        with pytest.raises(MalformedHeaderError):
            await validator.check(unsigned_token(header, make_claims()), AUDIENCE)

        assert provider.calls == {"config": 0, "keys": 0}

    async def test_unknown_key(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        token = token_factory(header={"typ": "JWT", "alg": "RS256", "kid": "unknown"})
        validator = Validator(transport=provider.transport)

        with pytest.raises(KeyNotFoundError):
            await validator.check(token, AUDIENCE)

    async def test_signed_by_other_key(
        self, provider: MockProvider, other_key: jwk.RSAKey
    ) -> None:
        token = sign_token(other_key, make_claims())
        validator = Validator(transport=provider.transport)

        with pytest.raises(SignatureVerificationFailedError):
            await validator.check(token, AUDIENCE)

    async def test_tampered_payload_is_signature_error_not_claims_error(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        header, payload, signature = token_factory().split(".")
        forged = json.loads(b64url_decode(payload))
        forged["sub"] = "change-sub"
        forged["aud"] = "other-app"
        tampered = ".".join([header, encode_segment(forged), signature])
        validator = Validator(transport=provider.transport)

        with pytest.raises(SignatureVerificationFailedError):
            await validator.check(tampered, AUDIENCE)

    async def test_audience_mismatch(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        validator = Validator(transport=provider.transport)

        with pytest.raises(AudienceMismatchError):
            await validator.check(token_factory(), "another-client-id")

    async def test_expired(
        self, provider: MockProvider, mock_time: MockTime, token_factory: Callable[..., str]
    ) -> None:
        token = token_factory(exp=int(mock_time.current) - 1)
        validator = Validator(transport=provider.transport)

        with pytest.raises(TokenExpiredError):
            await validator.check(token, AUDIENCE)

    async def test_expiring_now_is_expired(
        self, provider: MockProvider, mock_time: MockTime, token_factory: Callable[..., str]
    ) -> None:
        token = token_factory(exp=int(mock_time.current))
        validator = Validator(transport=provider.transport)

        with pytest.raises(TokenExpiredError):
            await validator.check(token, AUDIENCE)

    async def test_not_yet_valid(
        self, provider: MockProvider, mock_time: MockTime, token_factory: Callable[..., str]
    ) -> None:
        token = token_factory(nbf=int(mock_time.current) + 60)
        validator = Validator(transport=provider.transport)

        with pytest.raises(TokenNotYetValidError):
            await validator.check(token, AUDIENCE)

    async def test_missing_claim(
        self, provider: MockProvider, signing_key: jwk.RSAKey
    ) -> None:
        claims = make_claims()
        del claims["iat"]
        validator = Validator(transport=provider.transport)

        with pytest.raises(MalformedClaimsError):
            await validator.check(sign_token(signing_key, claims), AUDIENCE)


class TestProviderFailures:
    """Discovery and JWKS failures surface as distinct kinds."""

    async def test_config_fetch_failed(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.config_status = 503
        validator = Validator(transport=provider.transport)

        with pytest.raises(ConfigFetchFailedError):
            await validator.check(token_factory(), AUDIENCE)

    async def test_keys_uri_not_found(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.config_body = {"issuer": "https://login.microsoftonline.com/{tenantid}/v2.0"}
        validator = Validator(transport=provider.transport)

        with pytest.raises(KeysUriNotFoundError):
            await validator.check(token_factory(), AUDIENCE)

    async def test_keys_fetch_failed(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.keys_status = 500
        validator = Validator(transport=provider.transport)

        with pytest.raises(KeysFetchFailedError):
            await validator.check(token_factory(), AUDIENCE)

    async def test_bad_key_set_format(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.keys_body = {"value": []}
        validator = Validator(transport=provider.transport)

        with pytest.raises(BadKeySetFormatError):
            await validator.check(token_factory(), AUDIENCE)

    async def test_unreachable_provider(self, token_factory: Callable[..., str]) -> None:
        def mock_handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        validator = Validator(transport=httpx.MockTransport(mock_handler))

        with pytest.raises(ConfigFetchFailedError):
            await validator.check(token_factory(), AUDIENCE)


class TestKeyCaching:
    """Key set is fetched once per cache lifetime."""

    async def test_checks_share_cached_keys(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        validator = Validator(transport=provider.transport)

        for _ in range(5):
            await validator.check(token_factory(), AUDIENCE)

        assert provider.calls == {"config": 1, "keys": 1}

    async def test_expiry_option_controls_refetch(
        self, provider: MockProvider, mock_time: MockTime, token_factory: Callable[..., str]
    ) -> None:
        validator = Validator(expiry=1800, transport=provider.transport)

        await validator.check(token_factory(), AUDIENCE)
        mock_time.advance(1790)
        await validator.check(token_factory(), AUDIENCE)
        assert provider.calls["keys"] == 1

        mock_time.advance(11)
        await validator.check(token_factory(), AUDIENCE)
        assert provider.calls == {"config": 2, "keys": 2}

    async def test_concurrent_checks_on_stale_cache_fetch_once(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.delay = 0.01
        validator = Validator(transport=provider.transport)
        token = token_factory()

        results = await asyncio.gather(*(validator.check(token, AUDIENCE) for _ in range(10)))

        assert all(claims["sub"] == results[0]["sub"] for claims in results)
        assert provider.calls == {"config": 1, "keys": 1}

    async def test_concurrent_checks_during_outage_discover_once(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        provider.config_status = 503
        provider.delay = 0.01
        validator = Validator(transport=provider.transport)
        token = token_factory()

        results = await asyncio.gather(
            *(validator.check(token, AUDIENCE) for _ in range(10)), return_exceptions=True
        )

        assert all(isinstance(result, ConfigFetchFailedError) for result in results)
        assert provider.calls == {"config": 1, "keys": 0}

    async def test_instances_do_not_share_cache(
        self, provider: MockProvider, token_factory: Callable[..., str]
    ) -> None:
        await Validator(transport=provider.transport).check(token_factory(), AUDIENCE)
        await Validator(transport=provider.transport).check(token_factory(), AUDIENCE)

        assert provider.calls == {"config": 2, "keys": 2}


def test_default_config() -> None:
    validator = Validator()

    assert validator.config.expiry == 3600
    assert validator.key_resolver.expiry == 3600


def test_expiry_keyword_overrides_config() -> None:
    validator = Validator(ValidatorConfig(expiry=60, http_timeout=5), expiry=1800)

    assert validator.config.expiry == 1800
    assert validator.config.http_timeout == 5
