"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chainpulse.config import (
    AppConfig,
    AuxiliaryConfig,
    LayoutConfig,
    NavigationConfig,
    ProviderConfig,
    RefreshConfig,
    StreamConfig,
)
from chainpulse.metadata import StaticTables
from chainpulse.models import Asset, Snapshot, make_asset

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_provider_configs() -> tuple[ProviderConfig, ...]:
    return (
        ProviderConfig(name="cryptocompare", base_url="https://cc.example.com/data", timeout=5),
        ProviderConfig(name="coingecko", base_url="https://cg.example.com/api/v3", timeout=5),
        ProviderConfig(name="coincap", base_url="https://cap.example.com/v2", timeout=5),
    )


@pytest.fixture()
def sample_app_config(sample_provider_configs: tuple[ProviderConfig, ...]) -> AppConfig:
    return AppConfig(
        refresh=RefreshConfig(interval_seconds=30, stale_after_seconds=300, limit=50),
        providers=sample_provider_configs,
        stream=StreamConfig(enabled=False),
        auxiliary=AuxiliaryConfig(timeout=5),
        layout=LayoutConfig(),
        navigation=NavigationConfig(),
    )


@pytest.fixture()
def sample_tables() -> StaticTables:
    return StaticTables()


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


def _asset(symbol: str, **kwargs) -> Asset:
    tables = StaticTables()
    kwargs.setdefault("category", tables.category_for(symbol))
    kwargs.setdefault("ecosystems", tables.ecosystems_for(symbol))
    return make_asset(symbol, **kwargs)


@pytest.fixture()
def sample_assets() -> tuple[Asset, ...]:
    return (
        _asset("btc", name="Bitcoin", price=64000, market_cap=1000, volume_24h=50,
               change_1h=0.5, change_24h=10, change_7d=3),
        _asset("eth", name="Ethereum", price=3200, market_cap=400, volume_24h=30,
               change_1h=-0.2, change_24h=-2, change_7d=-4),
        _asset("sol", name="Solana", price=150, market_cap=100, volume_24h=40,
               change_1h=1.0, change_24h=5, change_7d=12),
        _asset("uni", name="Uniswap", price=8, market_cap=50, volume_24h=5,
               change_1h=0.0, change_24h=0, change_7d=1),
        _asset("bonk", name="Bonk", price=0.00002, market_cap=20, volume_24h=10,
               change_1h=-1.5, change_24h=-8, change_7d=20),
    )


@pytest.fixture()
def sample_snapshot(sample_assets: tuple[Asset, ...]) -> Snapshot:
    return Snapshot(assets=sample_assets, fetched_at=FIXED_NOW, source="cryptocompare")


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    refresh:
      interval_seconds: 45
      stale_after_seconds: 120
      currency: usd
      limit: 25
    providers:
      - name: CryptoCompare
        base_url: "https://cc.example.com/data"
        timeout: 8
      - name: coingecko
        base_url: "https://cg.example.com/api/v3"
    stream:
      enabled: false
      initial_backoff: 2
      max_backoff: 20
    layout:
      outer_padding: 6
    navigation:
      view_mode: sector
      sizing_metric: volume_24h
      timeframe: 7d
    tables:
      sectors:
        pepe: Meme
      ecosystems:
        base: [aero, brett]
      stream_keys:
        pepe: pepe
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample provider payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def cryptocompare_payload() -> dict:
    return {
        "Message": "Success",
        "Type": 100,
        "Data": [
            {
                "CoinInfo": {"Name": "BTC", "FullName": "Bitcoin", "ImageUrl": "/media/btc.png"},
                "RAW": {
                    "USD": {
                        "PRICE": 64000.5,
                        "MKTCAP": 1.26e12,
                        "TOTALVOLUME24H": 3.1e10,
                        "CHANGEPCT24HOUR": 2.5,
                        "CHANGEPCTHOUR": -0.3,
                    }
                },
            },
            {
                "CoinInfo": {"Name": "ETH", "FullName": "Ethereum", "ImageUrl": "/media/eth.png"},
                "RAW": {
                    "USD": {
                        "PRICE": 3100,
                        "MKTCAP": 3.7e11,
                        "TOTALVOLUME24H": 1.5e10,
                        "CHANGEPCT24HOUR": -1.25,
                        "CHANGEPCTHOUR": 0.1,
                    }
                },
            },
            {"CoinInfo": {"Name": "NEWCOIN", "FullName": "New Coin"}},
        ],
    }


@pytest.fixture()
def coingecko_payload() -> list:
    return [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "image": "https://img.example.com/btc.png",
            "current_price": 64000,
            "market_cap": 1.26e12,
            "total_volume": 3.1e10,
            "price_change_percentage_24h": 2.5,
            "price_change_percentage_1h_in_currency": -0.3,
            "price_change_percentage_7d_in_currency": 6.0,
            "sparkline_in_7d": {"price": [63000, 63500.5, None, 64000]},
        },
        {
            "id": "solana",
            "symbol": "sol",
            "name": "Solana",
            "image": "https://img.example.com/sol.png",
            "current_price": 150,
            "market_cap": 6.8e10,
            "total_volume": 2.0e9,
            "price_change_percentage_24h": None,
            "price_change_percentage_1h_in_currency": 0.2,
            "price_change_percentage_7d_in_currency": -3.0,
            "sparkline_in_7d": {"price": []},
        },
    ]


@pytest.fixture()
def coincap_payload() -> dict:
    return {
        "data": [
            {
                "id": "bitcoin",
                "symbol": "BTC",
                "name": "Bitcoin",
                "priceUsd": "64000.1234",
                "marketCapUsd": "1260000000000.0",
                "volumeUsd24Hr": "31000000000.5",
                "changePercent24Hr": "2.5",
                "supply": "19700000",
                "maxSupply": "21000000",
            },
            {
                "id": "binance-coin",
                "symbol": "BNB",
                "name": "BNB",
                "priceUsd": "580.5",
                "marketCapUsd": None,
                "volumeUsd24Hr": "-12",
                "changePercent24Hr": "-0.75",
            },
        ],
        "timestamp": 1714564800000,
    }
