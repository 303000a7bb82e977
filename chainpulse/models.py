"""Data models. All frozen (immutable)."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Union


def to_float(value: Any) -> float:
    """Coerce a provider value (number, numeric string, None) to a finite float.

    Anything that is missing, non-numeric, NaN or infinite becomes ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def is_finite(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def non_negative(value: Any) -> float:
    """Like :func:`to_float`, but negative values clamp to ``0.0``."""
    return max(0.0, to_float(value))


@dataclass(frozen=True)
class Asset:
    """Canonical per-instrument record shared by every provider."""

    id: str
    symbol: str
    name: str = ""
    image_ref: str = ""
    price: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0
    change_1h: float = 0.0
    change_24h: float = 0.0
    change_7d: float = 0.0
    sparkline_7d: tuple[float, ...] = ()
    category: str = "Others"
    ecosystems: frozenset[str] = frozenset()


def make_asset(
    symbol: str,
    *,
    asset_id: str | None = None,
    name: str | None = None,
    image_ref: str | None = None,
    price: Any = None,
    market_cap: Any = None,
    volume_24h: Any = None,
    change_1h: Any = None,
    change_24h: Any = None,
    change_7d: Any = None,
    sparkline_7d: Iterable[Any] | None = None,
    category: str | None = None,
    ecosystems: Iterable[str] = (),
) -> Asset:
    """Build a validated :class:`Asset`.

    Identifiers are lowercased, negative/unknown magnitudes clamp to 0,
    missing percentage windows default to 0 and a missing sparkline becomes
    an empty tuple.
    """
    symbol = (symbol or "").strip().lower()
    points = tuple(float(p) for p in (sparkline_7d or ()) if is_finite(p))
    return Asset(
        id=(asset_id or symbol).strip().lower(),
        symbol=symbol,
        name=name or "",
        image_ref=image_ref or "",
        price=non_negative(price),
        market_cap=non_negative(market_cap),
        volume_24h=non_negative(volume_24h),
        change_1h=to_float(change_1h),
        change_24h=to_float(change_24h),
        change_7d=to_float(change_7d),
        sparkline_7d=points,
        category=category or "Others",
        ecosystems=frozenset(e.lower() for e in ecosystems),
    )


@dataclass(frozen=True)
class Snapshot:
    """Internally consistent set of canonical assets from one refresh."""

    assets: tuple[Asset, ...]
    fetched_at: datetime
    source: str

    def get(self, asset_id: str) -> Asset | None:
        asset_id = asset_id.lower()
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(a.id for a in self.assets)

    def __len__(self) -> int:
        return len(self.assets)


@dataclass(frozen=True)
class SectorAggregate:
    """Derived per-sector totals for the sector view."""

    name: str
    size_value: float
    weighted_change_24h: float
    member_count: int
    market_cap: float = 0.0
    volume_24h: float = 0.0


@dataclass(frozen=True)
class HierarchyNode:
    """Tree node with a sizing weight and an optional terminal payload."""

    key: str
    name: str
    value: float
    children: tuple[HierarchyNode, ...] = ()
    payload: Union[Asset, SectorAggregate, None] = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def leaves(self) -> list[HierarchyNode]:
        if self.is_leaf:
            return [self]
        result: list[HierarchyNode] = []
        for child in self.children:
            result.extend(child.leaves())
        return result


@dataclass(frozen=True)
class TreemapRect:
    """Integer pixel rectangle assigned to a leaf node."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    @property
    def area(self) -> int:
        return self.width * self.height

    def overlaps(self, other: TreemapRect) -> bool:
        return (
            self.x0 < other.x1
            and other.x0 < self.x1
            and self.y0 < other.y1
            and other.y0 < self.y1
        )


@dataclass(frozen=True)
class LayoutCell:
    """A leaf node paired with its computed rectangle."""

    node: HierarchyNode
    rect: TreemapRect

    @property
    def key(self) -> str:
        return self.node.key


@dataclass(frozen=True)
class PricePatch:
    """Price-only delta for one canonical asset."""

    asset_id: str
    price: float


# ---------------------------------------------------------------------------
# Detail / auxiliary payloads (every field optional)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetDetail:
    """Per-asset detail used by the detail panel."""

    id: str
    symbol: str
    name: str = ""
    image_ref: str = ""
    price: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0
    change_24h: float = 0.0
    circulating_supply: float | None = None
    total_supply: float | None = None
    fdv: float | None = None
    homepage: str = ""
    whitepaper: str = ""
    twitter: str = ""
    tvl: float | None = None


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    price: float


@dataclass(frozen=True)
class SentimentIndex:
    value: int
    classification: str


@dataclass(frozen=True)
class LongShortRatio:
    ratio: float
    long_pct: float
    short_pct: float


@dataclass(frozen=True)
class ChainStats:
    name: str
    tvl: float
    token_symbol: str = ""


@dataclass(frozen=True)
class AuxiliaryReport:
    """Joined result of the best-effort auxiliary fetches for one asset."""

    symbol: str
    tvl: float | None = None
    fees_24h: float | None = None
    gas_price_gwei: float | None = None
    sentiment: SentimentIndex | None = None
    long_short: LongShortRatio | None = None
    chain_stats: ChainStats | None = None
    failures: tuple[str, ...] = field(default=())
