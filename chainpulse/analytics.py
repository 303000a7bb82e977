"""Market-wide statistics derived from a snapshot."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .hierarchy import weighted_change
from .models import Asset
from .navigation import Timeframe


class LeaderboardKind(str, Enum):
    GAINERS = "gainers"
    LOSERS = "losers"
    VOLUME = "volume"


@dataclass(frozen=True)
class GlobalStats:
    total_market_cap: float
    total_volume_24h: float
    btc_dominance: float
    eth_dominance: float
    market_cap_change_24h: float
    asset_count: int


@dataclass(frozen=True)
class MarketBreadth:
    gainers: int
    losers: int
    unchanged: int
    total: int

    @property
    def gainers_pct(self) -> float:
        return self.gainers / self.total * 100 if self.total else 0.0

    @property
    def losers_pct(self) -> float:
        return self.losers / self.total * 100 if self.total else 0.0


def change_for(asset: Asset, timeframe: Timeframe | str) -> float:
    timeframe = Timeframe(timeframe)
    if timeframe is Timeframe.ONE_HOUR:
        return asset.change_1h
    if timeframe is Timeframe.SEVEN_DAYS:
        return asset.change_7d
    return asset.change_24h


def _dominance(assets: Sequence[Asset], asset_id: str, total: float) -> float:
    if total <= 0:
        return 0.0
    cap = sum(a.market_cap for a in assets if a.id == asset_id)
    return cap / total * 100


def global_stats(assets: Sequence[Asset]) -> GlobalStats:
    total_cap = sum(a.market_cap for a in assets)
    return GlobalStats(
        total_market_cap=total_cap,
        total_volume_24h=sum(a.volume_24h for a in assets),
        btc_dominance=_dominance(assets, "btc", total_cap),
        eth_dominance=_dominance(assets, "eth", total_cap),
        market_cap_change_24h=weighted_change(assets),
        asset_count=len(assets),
    )


def market_breadth(
    assets: Sequence[Asset], timeframe: Timeframe | str = Timeframe.ONE_DAY
) -> MarketBreadth:
    changes = [change_for(a, timeframe) for a in assets]
    gainers = sum(1 for c in changes if c > 0)
    losers = sum(1 for c in changes if c < 0)
    return MarketBreadth(
        gainers=gainers,
        losers=losers,
        unchanged=len(changes) - gainers - losers,
        total=len(changes),
    )


def leaderboard(
    assets: Sequence[Asset],
    kind: LeaderboardKind | str = LeaderboardKind.GAINERS,
    timeframe: Timeframe | str = Timeframe.ONE_DAY,
    limit: int = 10,
) -> list[Asset]:
    """Top ``limit`` assets by change (gainers/losers) or by 24h volume."""
    kind = LeaderboardKind(kind)
    if kind is LeaderboardKind.VOLUME:
        ranked = sorted(assets, key=lambda a: (-a.volume_24h, a.id))
    elif kind is LeaderboardKind.LOSERS:
        ranked = sorted(assets, key=lambda a: (change_for(a, timeframe), a.id))
    else:
        ranked = sorted(assets, key=lambda a: (-change_for(a, timeframe), a.id))
    return ranked[: max(0, limit)]
