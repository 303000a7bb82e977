"""Integration tests for the JSON HTTP client: status, body and timeout handling."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from chainpulse.errors import MalformedPayload, ProviderUnavailable
from chainpulse.http import JsonHttpClient


def _mock_session(
    status: int = 200,
    json_data=None,
    json_error: Exception | None = None,
    get_error: Exception | None = None,
):
    """Create a mock aiohttp session whose ``get`` returns the given response."""
    mock_response = AsyncMock()
    mock_response.status = status
    if json_error:
        mock_response.json = AsyncMock(side_effect=json_error)
    else:
        mock_response.json = AsyncMock(return_value=json_data)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if get_error:
        mock_session.get = MagicMock(side_effect=get_error)
    else:
        mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


@pytest.fixture()
def client() -> JsonHttpClient:
    return JsonHttpClient("testprov", "https://api.example.com/v1/", timeout=3)


class TestGetJson:
    @pytest.mark.asyncio
    async def test_returns_decoded_body(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(json_data={"ok": True})

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                result = await client.get_json("assets", {"limit": 5, "skip": None})

        assert result == {"ok": True}
        call = mock_session.get.call_args
        assert call.args[0] == "https://api.example.com/v1/assets"
        assert call.kwargs["params"] == {"limit": 5}
        assert call.kwargs["timeout"].total == 3

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(status=429)

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                with pytest.raises(ProviderUnavailable, match="HTTP 429") as exc_info:
                    await client.get_json("assets")

        assert exc_info.value.provider == "testprov"
        assert not isinstance(exc_info.value, MalformedPayload)

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(json_error=ValueError("Expecting value"))

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                with pytest.raises(MalformedPayload, match="invalid JSON"):
                    await client.get_json("assets")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(get_error=asyncio.TimeoutError())

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                with pytest.raises(ProviderUnavailable, match="timeout after 3"):
                    await client.get_json("assets")

    @pytest.mark.asyncio
    async def test_network_error_is_unavailable(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(get_error=aiohttp.ClientConnectionError("refused"))

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                with pytest.raises(ProviderUnavailable, match="refused"):
                    await client.get_json("assets")

    @pytest.mark.asyncio
    async def test_empty_path_uses_base_url(self, client: JsonHttpClient) -> None:
        mock_session = _mock_session(json_data=[])

        with patch("chainpulse.http.aiohttp.ClientSession", return_value=mock_session):
            with patch("chainpulse.http.aiohttp.TCPConnector"):
                await client.get_json()

        assert mock_session.get.call_args.args[0] == "https://api.example.com/v1"
