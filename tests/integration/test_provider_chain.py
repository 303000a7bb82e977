"""Integration tests for the provider adapters and the fallback chain."""
from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from chainpulse.config import ProviderConfig
from chainpulse.errors import MalformedPayload, ProviderUnavailable, RefreshFailed
from chainpulse.metadata import StaticTables
from chainpulse.models import AssetDetail, PricePoint, make_asset
from chainpulse.providers import (
    CoinCapProvider,
    CoinGeckoProvider,
    CryptoCompareProvider,
    ProviderChain,
)


class FakeProvider:
    """Market provider stub returning canned assets or raising."""

    def __init__(self, name: str, assets=None, error: Exception | None = None,
                 detail: AssetDetail | None = None, history=None, delay: float = 0) -> None:
        self._name = name
        self.assets = assets or []
        self.error = error
        self.detail = detail
        self.history = history or []
        self.delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def fetch_top_assets(self, currency: str, limit: int, category: str | None = None) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.assets

    def normalize(self, payload: Any, tables: StaticTables):
        return list(payload)

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail:
        if self.error:
            raise self.error
        return self.detail

    async def fetch_history(self, symbol: str, days: int):
        if self.error:
            raise self.error
        return self.history


def _mock_http(*payloads) -> MagicMock:
    http = MagicMock()
    http.get_json = AsyncMock(side_effect=list(payloads))
    return http


# ---------------------------------------------------------------------------
# ProviderChain
# ---------------------------------------------------------------------------


class TestProviderChainSnapshot:
    @pytest.mark.asyncio
    async def test_first_provider_wins(self) -> None:
        primary = FakeProvider("cryptocompare", [make_asset("btc", market_cap=10)])
        secondary = FakeProvider("coingecko", [make_asset("eth", market_cap=5)])
        chain = ProviderChain([primary, secondary])

        snapshot = await chain.fetch_snapshot()

        assert snapshot.source == "cryptocompare"
        assert snapshot.ids == ("btc",)
        assert secondary.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_on_unavailable(self) -> None:
        primary = FakeProvider("cryptocompare", error=ProviderUnavailable("cryptocompare", "HTTP 500"))
        secondary = FakeProvider("coingecko", [make_asset("eth", market_cap=5)])
        chain = ProviderChain([primary, secondary])

        snapshot = await chain.fetch_snapshot()

        assert snapshot.source == "coingecko"
        assert snapshot.ids == ("eth",)
        assert primary.calls == 1

    @pytest.mark.asyncio
    async def test_empty_result_falls_back(self) -> None:
        primary = FakeProvider("cryptocompare", [])
        secondary = FakeProvider("coincap", [make_asset("sol")])
        chain = ProviderChain([primary, secondary])

        snapshot = await chain.fetch_snapshot()

        assert snapshot.source == "coincap"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self) -> None:
        primary = FakeProvider("cryptocompare", error=KeyError("Data"))
        secondary = FakeProvider("coingecko", [make_asset("btc")])
        chain = ProviderChain([primary, secondary])

        snapshot = await chain.fetch_snapshot()

        assert snapshot.source == "coingecko"

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self) -> None:
        slow = FakeProvider("cryptocompare", [make_asset("btc")], delay=1.0)
        fast = FakeProvider("coingecko", [make_asset("eth")])
        chain = ProviderChain([slow, fast], timeout=0.01)

        snapshot = await chain.fetch_snapshot()

        assert snapshot.source == "coingecko"

    @pytest.mark.asyncio
    async def test_duplicates_keep_first(self) -> None:
        provider = FakeProvider(
            "coingecko",
            [make_asset("btc", price=1), make_asset("BTC", price=2), make_asset("eth")],
        )
        snapshot = await ProviderChain([provider]).fetch_snapshot()

        assert snapshot.ids == ("btc", "eth")
        assert snapshot.get("btc").price == 1

    @pytest.mark.asyncio
    async def test_all_failing_raises_refresh_failed(self) -> None:
        chain = ProviderChain([
            FakeProvider("cryptocompare", error=ProviderUnavailable("cryptocompare", "HTTP 429")),
            FakeProvider("coingecko", []),
            FakeProvider("coincap", error=ProviderUnavailable("coincap", "timeout after 5s")),
        ])

        with pytest.raises(RefreshFailed) as exc_info:
            await chain.fetch_snapshot()

        failures = exc_info.value.failures
        assert [f.provider for f in failures] == ["cryptocompare", "coingecko", "coincap"]
        assert isinstance(failures[1], MalformedPayload)

    @pytest.mark.asyncio
    async def test_no_providers_raises(self) -> None:
        with pytest.raises(RefreshFailed, match="no providers configured"):
            await ProviderChain([]).fetch_snapshot()

    def test_provider_names(self) -> None:
        chain = ProviderChain([FakeProvider("a"), FakeProvider("b")])
        assert chain.provider_names == ["a", "b"]


class TestProviderChainDetailAndHistory:
    @pytest.mark.asyncio
    async def test_detail_falls_back(self) -> None:
        detail = AssetDetail(id="eth", symbol="eth", price=3000)
        chain = ProviderChain([
            FakeProvider("cryptocompare", error=ProviderUnavailable("cryptocompare", "HTTP 500")),
            FakeProvider("coingecko", detail=detail),
        ])

        assert await chain.fetch_asset_detail("eth") == detail

    @pytest.mark.asyncio
    async def test_empty_history_falls_back(self, sample_snapshot) -> None:
        point = PricePoint(timestamp=sample_snapshot.fetched_at, price=1.0)
        chain = ProviderChain([
            FakeProvider("cryptocompare", history=[]),
            FakeProvider("coingecko", history=[point]),
        ])

        assert await chain.fetch_history("btc", 1) == [point]


# ---------------------------------------------------------------------------
# Adapters against a mocked JSON client
# ---------------------------------------------------------------------------


class TestCryptoCompareProvider:
    @pytest.mark.asyncio
    async def test_top_assets_request(self, cryptocompare_payload) -> None:
        http = _mock_http(cryptocompare_payload)
        provider = CryptoCompareProvider(ProviderConfig(name="cryptocompare"), http=http)

        payload = await provider.fetch_top_assets("eur", 20)

        http.get_json.assert_awaited_once_with("top/mktcapfull", {"limit": 20, "tsym": "EUR"})
        assets = provider.normalize(payload, StaticTables())
        assert [a.id for a in assets] == ["btc", "eth", "newcoin"]

    @pytest.mark.asyncio
    async def test_history_limit(self) -> None:
        payload = {"Response": "Success", "Data": {"Data": [
            {"time": 1714564800, "close": 2.0},
            {"time": 1714561200, "close": 1.0},
        ]}}
        http = _mock_http(payload, payload)
        provider = CryptoCompareProvider(ProviderConfig(name="cryptocompare"), http=http)

        points = await provider.fetch_history("btc", 1)
        await provider.fetch_history("btc", 7)

        assert [p.price for p in points] == [1.0, 2.0]
        first, second = http.get_json.await_args_list
        assert first.args[1]["limit"] == 24
        assert second.args[1]["limit"] == 168
        assert first.args[1]["fsym"] == "BTC"

    def test_api_key_header(self) -> None:
        provider = CryptoCompareProvider(ProviderConfig(name="cryptocompare", api_key="k1"))
        assert provider._http.headers == {"authorization": "Apikey k1"}


class TestCoinGeckoProvider:
    @pytest.mark.asyncio
    async def test_markets_request_and_id_cache(self, coingecko_payload) -> None:
        chart = {"prices": [[1714564800000, 64000.0]]}
        http = _mock_http(coingecko_payload, chart)
        provider = CoinGeckoProvider(ProviderConfig(name="coingecko"), http=http)

        await provider.fetch_top_assets("USD", 2, category="layer-1")
        points = await provider.fetch_history("BTC", 7)

        markets_call, chart_call = http.get_json.await_args_list
        params = markets_call.args[1]
        assert markets_call.args[0] == "coins/markets"
        assert params["vs_currency"] == "usd"
        assert params["per_page"] == 2
        assert params["category"] == "layer-1"
        assert params["price_change_percentage"] == "1h,24h,7d"
        # the symbol->id mapping came from the listing, no extra lookup
        assert chart_call.args[0] == "coins/bitcoin/market_chart"
        assert chart_call.args[1]["days"] == 7
        assert points[0].price == 64000.0

    @pytest.mark.asyncio
    async def test_history_resolves_unknown_symbol(self) -> None:
        http = _mock_http(
            [{"id": "dogwifcoin", "symbol": "wif"}],
            {"prices": [[1714564800000, 3.0]]},
        )
        provider = CoinGeckoProvider(ProviderConfig(name="coingecko"), http=http)

        await provider.fetch_history("wif", 1)

        lookup, chart = http.get_json.await_args_list
        assert lookup.args[1]["symbols"] == "wif"
        assert chart.args[0] == "coins/dogwifcoin/market_chart"

    @pytest.mark.asyncio
    async def test_detail_unknown_symbol_is_malformed(self) -> None:
        provider = CoinGeckoProvider(ProviderConfig(name="coingecko"), http=_mock_http([]))

        with pytest.raises(MalformedPayload):
            await provider.fetch_asset_detail("nope")


class TestCoinCapProvider:
    @pytest.mark.asyncio
    async def test_top_assets_request(self, coincap_payload) -> None:
        http = _mock_http(coincap_payload)
        provider = CoinCapProvider(ProviderConfig(name="coincap"), http=http)

        payload = await provider.fetch_top_assets("USD", 100)

        http.get_json.assert_awaited_once_with("assets", {"limit": 100})
        assets = provider.normalize(payload, StaticTables())
        assert [a.id for a in assets] == ["btc", "bnb"]

    @pytest.mark.asyncio
    async def test_detail(self, coincap_payload) -> None:
        http = _mock_http(coincap_payload)
        provider = CoinCapProvider(ProviderConfig(name="coincap"), http=http)

        detail = await provider.fetch_asset_detail("BTC")

        assert http.get_json.await_args.args[1] == {"search": "btc", "limit": 5}
        assert detail.total_supply == 21_000_000
        assert detail.fdv == pytest.approx(64000.1234 * 21_000_000)

    @pytest.mark.asyncio
    async def test_history_unsupported_fails_over(self) -> None:
        http = _mock_http({"Response": "Success", "Data": {"Data": [
            {"time": 1714564800, "close": 5.0},
        ]}})
        coincap = CoinCapProvider(ProviderConfig(name="coincap"), http=MagicMock())
        cryptocompare = CryptoCompareProvider(ProviderConfig(name="cryptocompare"), http=http)

        points = await ProviderChain([coincap, cryptocompare]).fetch_history("btc", 1)

        assert [p.price for p in points] == [5.0]
