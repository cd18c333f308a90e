"""Tests for the Figma OAuth adapter and integration registry."""

import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from changewatch.core.errors import ConfigError, TransportError, UpstreamAuthError, ValidationError
from changewatch.integrations.base import OAuthTokens
from changewatch.integrations.figma import FigmaIntegration
from changewatch.integrations.registry import IntegrationRegistry
from changewatch.models.integration import FigmaConfig

CONFIG = FigmaConfig.from_mapping(
    {"clientId": "client-abc", "clientSecret": "secret-xyz", "refreshToken": "refresh-1"}
)


class TestFigmaTokenRequests:
    """Tests for FigmaIntegration token endpoint calls."""

    @pytest.mark.asyncio
    async def test_exchange_code_sends_form_and_basic_auth(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "access_token": "access-1",
                    "refresh_token": "refresh-1",
                    "expires_in": 3600,
                    "user_id_string": "figma-user-9",
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            tokens = await FigmaIntegration().exchange_code(http, CONFIG, "auth-code")

        assert tokens.access_token == "access-1"
        assert tokens.refresh_token == "refresh-1"
        assert tokens.expires_in == 3600
        assert tokens.provider_user_id == "figma-user-9"

        request = seen[0]
        assert request.method == "POST"
        expected = base64.b64encode(b"client-abc:secret-xyz").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth-code"]
        assert "redirect_uri" in form

    @pytest.mark.asyncio
    async def test_refresh_sends_refresh_token(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "access-2", "expires_in": 60})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            tokens = await FigmaIntegration().refresh_tokens(http, CONFIG)

        assert tokens.access_token == "access-2"
        assert tokens.refresh_token is None
        form = parse_qs(seen[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["refresh-1"]

    @pytest.mark.asyncio
    async def test_rejected_grant_is_upstream_auth_error(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda r: httpx.Response(400, text='{"error":"invalid_grant"}')
            )
        ) as http:
            with pytest.raises(UpstreamAuthError) as exc_info:
                await FigmaIntegration().refresh_tokens(http, CONFIG)

        assert exc_info.value.upstream_status == 400
        assert "invalid_grant" in exc_info.value.upstream_body

    @pytest.mark.asyncio
    async def test_response_without_access_token(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        ) as http:
            with pytest.raises(UpstreamAuthError):
                await FigmaIntegration().exchange_code(http, CONFIG, "code")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("expires_in", ["soon", [3600], {"seconds": 1}])
    async def test_non_numeric_expiry_is_transport_error(self, expires_in):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda r: httpx.Response(
                    200, json={"access_token": "x", "expires_in": expires_in}
                )
            )
        ) as http:
            with pytest.raises(TransportError, match="malformed"):
                await FigmaIntegration().exchange_code(http, CONFIG, "code")

    @pytest.mark.asyncio
    async def test_numeric_string_expiry_is_accepted(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda r: httpx.Response(200, json={"access_token": "x", "expires_in": "3600"})
            )
        ) as http:
            tokens = await FigmaIntegration().refresh_tokens(http, CONFIG)

        assert tokens.expires_in == 3600

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(TransportError):
                await FigmaIntegration().exchange_code(http, CONFIG, "code")


class TestBuildConfigUpdate:
    """Tests for FigmaIntegration.build_config_update."""

    def test_full_token_response(self):
        tokens = OAuthTokens(
            access_token="a",
            refresh_token="r",
            expires_in=7776000,
            provider_user_id="u",
        )

        update = FigmaIntegration().build_config_update(tokens, now_ms=1_000)

        assert update == {
            "accessToken": "a",
            "refreshToken": "r",
            "expiresAt": str(1_000 + 7776000 * 1000),
            "userId": "u",
        }

    def test_minimal_token_response(self):
        update = FigmaIntegration().build_config_update(OAuthTokens(access_token="a"), now_ms=0)
        assert update == {"accessToken": "a"}


class TestIntegrationRegistry:
    """Tests for IntegrationRegistry."""

    def test_authorization_url(self):
        url = IntegrationRegistry().get_authorization_url("figma", "client-abc", "state-1")

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert parsed.netloc == "www.figma.com"
        assert params["client_id"] == ["client-abc"]
        assert params["scope"] == ["org:activity_log_read"]
        assert params["state"] == ["state-1"]
        assert params["response_type"] == ["code"]

    def test_missing_client_id(self):
        with pytest.raises(ConfigError, match="Client ID is required"):
            IntegrationRegistry().get_authorization_url("figma", "", "state")

    def test_unknown_provider(self):
        with pytest.raises(ValidationError, match="Unsupported integration type"):
            IntegrationRegistry().get_integration("sketch")

    def test_provider_lookup_is_case_insensitive(self):
        assert IntegrationRegistry().get_integration("Figma").provider_id == "figma"
