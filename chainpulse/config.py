"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .navigation import SizingMetric, Timeframe, ViewMode

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RefreshConfig:
    interval_seconds: int = 60
    stale_after_seconds: int = 300
    currency: str = "USD"
    limit: int = 100
    category: str | None = None


@dataclass(frozen=True)
class ProviderConfig:
    name: str = ""
    base_url: str = ""
    timeout: float = 10.0
    api_key: str = ""


@dataclass(frozen=True)
class StreamConfig:
    enabled: bool = True
    url: str = "wss://ws.coincap.io/prices"
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    heartbeat_seconds: float = 30.0


@dataclass(frozen=True)
class AuxiliaryConfig:
    timeout: float = 10.0
    defillama_url: str = "https://api.llama.fi"
    sentiment_url: str = "https://api.alternative.me/fng/"
    binance_futures_url: str = "https://fapi.binance.com"
    etherscan_url: str = "https://api.etherscan.io/api"
    etherscan_api_key: str = ""


@dataclass(frozen=True)
class LayoutConfig:
    outer_padding: int = 4
    inner_padding: int = 2
    label_strip: int = 28


@dataclass(frozen=True)
class NavigationConfig:
    view_mode: str = ViewMode.TOKEN.value
    sizing_metric: str = SizingMetric.MARKET_CAP.value
    timeframe: str = Timeframe.ONE_DAY.value


@dataclass(frozen=True)
class TablesConfig:
    sectors: dict[str, str] = field(default_factory=dict)
    ecosystems: dict[str, tuple[str, ...]] = field(default_factory=dict)
    defillama_slugs: dict[str, str] = field(default_factory=dict)
    stream_keys: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AppConfig:
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    providers: tuple[ProviderConfig, ...] = ()
    stream: StreamConfig = field(default_factory=StreamConfig)
    auxiliary: AuxiliaryConfig = field(default_factory=AuxiliaryConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    tables: TablesConfig = field(default_factory=TablesConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_refresh(raw: dict[str, Any]) -> RefreshConfig:
    return RefreshConfig(
        interval_seconds=int(raw.get("interval_seconds", 60)),
        stale_after_seconds=int(raw.get("stale_after_seconds", 300)),
        currency=str(raw.get("currency", "USD")).upper(),
        limit=int(raw.get("limit", 100)),
        category=raw.get("category") or None,
    )


def _build_providers(raw: list[dict[str, Any]]) -> tuple[ProviderConfig, ...]:
    providers: list[ProviderConfig] = []
    for p in raw:
        providers.append(
            ProviderConfig(
                name=str(p.get("name", "")).lower(),
                base_url=p.get("base_url", ""),
                timeout=float(p.get("timeout", 10.0)),
                api_key=p.get("api_key", ""),
            )
        )
    return tuple(providers)


def _build_stream(raw: dict[str, Any]) -> StreamConfig:
    return StreamConfig(
        enabled=bool(raw.get("enabled", True)),
        url=raw.get("url", StreamConfig.url),
        initial_backoff=float(raw.get("initial_backoff", 1.0)),
        max_backoff=float(raw.get("max_backoff", 30.0)),
        heartbeat_seconds=float(raw.get("heartbeat_seconds", 30.0)),
    )


def _build_auxiliary(raw: dict[str, Any]) -> AuxiliaryConfig:
    return AuxiliaryConfig(
        timeout=float(raw.get("timeout", 10.0)),
        defillama_url=raw.get("defillama_url", AuxiliaryConfig.defillama_url),
        sentiment_url=raw.get("sentiment_url", AuxiliaryConfig.sentiment_url),
        binance_futures_url=raw.get(
            "binance_futures_url", AuxiliaryConfig.binance_futures_url
        ),
        etherscan_url=raw.get("etherscan_url", AuxiliaryConfig.etherscan_url),
        etherscan_api_key=raw.get("etherscan_api_key", ""),
    )


def _build_layout(raw: dict[str, Any]) -> LayoutConfig:
    return LayoutConfig(
        outer_padding=int(raw.get("outer_padding", 4)),
        inner_padding=int(raw.get("inner_padding", 2)),
        label_strip=int(raw.get("label_strip", 28)),
    )


def _build_navigation(raw: dict[str, Any]) -> NavigationConfig:
    return NavigationConfig(
        view_mode=str(raw.get("view_mode", NavigationConfig.view_mode)),
        sizing_metric=str(raw.get("sizing_metric", NavigationConfig.sizing_metric)),
        timeframe=str(raw.get("timeframe", NavigationConfig.timeframe)),
    )


def _build_tables(raw: dict[str, Any]) -> TablesConfig:
    return TablesConfig(
        sectors=dict(raw.get("sectors", {})),
        ecosystems={
            name: tuple(members)
            for name, members in raw.get("ecosystems", {}).items()
        },
        defillama_slugs=dict(raw.get("defillama_slugs", {})),
        stream_keys=dict(raw.get("stream_keys", {})),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        refresh=_build_refresh(raw.get("refresh", {})),
        providers=_build_providers(raw.get("providers", [])),
        stream=_build_stream(raw.get("stream", {})),
        auxiliary=_build_auxiliary(raw.get("auxiliary", {})),
        layout=_build_layout(raw.get("layout", {})),
        navigation=_build_navigation(raw.get("navigation", {})),
        tables=_build_tables(raw.get("tables", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.providers:
        raise ValueError("At least one provider must be configured")

    seen: set[str] = set()
    for provider in cfg.providers:
        if not provider.name:
            raise ValueError("Provider entry has no name")
        if provider.name in seen:
            raise ValueError(f"Provider '{provider.name}' is listed twice")
        seen.add(provider.name)
        if provider.timeout <= 0:
            raise ValueError(f"Provider '{provider.name}' has non-positive timeout")

    if cfg.refresh.interval_seconds <= 0:
        raise ValueError("refresh.interval_seconds must be positive")
    if cfg.refresh.stale_after_seconds <= 0:
        raise ValueError("refresh.stale_after_seconds must be positive")
    if cfg.refresh.limit <= 0:
        raise ValueError("refresh.limit must be positive")

    if cfg.stream.initial_backoff <= 0:
        raise ValueError("stream.initial_backoff must be positive")
    if cfg.stream.max_backoff < cfg.stream.initial_backoff:
        raise ValueError("stream.max_backoff must be >= stream.initial_backoff")

    nav = cfg.navigation
    if nav.view_mode not in {v.value for v in ViewMode}:
        raise ValueError(f"Unknown navigation.view_mode '{nav.view_mode}'")
    if nav.sizing_metric not in {m.value for m in SizingMetric}:
        raise ValueError(f"Unknown navigation.sizing_metric '{nav.sizing_metric}'")
    if nav.timeframe not in {t.value for t in Timeframe}:
        raise ValueError(f"Unknown navigation.timeframe '{nav.timeframe}'")
