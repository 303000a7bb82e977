"""Hierarchy builder: filtered assets -> weighted two-level tree (pure)."""
from __future__ import annotations

import math
from collections import defaultdict
from typing import Iterable, Sequence

from .models import Asset, HierarchyNode, SectorAggregate
from .navigation import ALL_ECOSYSTEMS, NavigationState, SizingMetric, ViewMode

ROOT_KEY = "root"


def filter_by_ecosystem(assets: Iterable[Asset], ecosystem: str) -> list[Asset]:
    """Assets tagged with ``ecosystem``; ``"all"`` keeps everything."""
    ecosystem = (ecosystem or ALL_ECOSYSTEMS).lower()
    if ecosystem == ALL_ECOSYSTEMS:
        return list(assets)
    return [a for a in assets if ecosystem in a.ecosystems]


def metric_value(asset: Asset, metric: SizingMetric) -> float:
    """Sizing weight for one asset; negative or non-finite values weigh 0."""
    if metric is SizingMetric.VOLUME_24H:
        value = asset.volume_24h
    else:
        value = asset.market_cap
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)


def weighted_change(assets: Sequence[Asset]) -> float:
    """Market-cap-weighted 24h change; 0 when the total cap is 0."""
    total_cap = sum(a.market_cap for a in assets)
    if total_cap <= 0:
        return 0.0
    return sum(a.change_24h * a.market_cap for a in assets) / total_cap


def aggregate_sectors(
    assets: Iterable[Asset], metric: SizingMetric
) -> list[SectorAggregate]:
    groups: dict[str, list[Asset]] = defaultdict(list)
    for asset in assets:
        groups[asset.category].append(asset)

    return [
        SectorAggregate(
            name=name,
            size_value=sum(metric_value(a, metric) for a in members),
            weighted_change_24h=weighted_change(members),
            member_count=len(members),
            market_cap=sum(a.market_cap for a in members),
            volume_24h=sum(a.volume_24h for a in members),
        )
        for name, members in groups.items()
    ]


def _sorted(children: list[HierarchyNode]) -> tuple[HierarchyNode, ...]:
    return tuple(sorted(children, key=lambda n: (-n.value, n.key)))


def build_hierarchy(assets: Iterable[Asset], state: NavigationState) -> HierarchyNode:
    """Build the root node for the current navigation state.

    Sector view yields one child per sector; token view yields one child per
    asset, restricted to ``state.selected_sector`` when one is set.
    """
    metric = SizingMetric(state.sizing_metric)
    visible = filter_by_ecosystem(assets, state.ecosystem_filter)

    if state.view_mode is ViewMode.SECTOR:
        children = [
            HierarchyNode(key=agg.name, name=agg.name, value=agg.size_value, payload=agg)
            for agg in aggregate_sectors(visible, metric)
        ]
    else:
        if state.selected_sector is not None:
            visible = [a for a in visible if a.category == state.selected_sector]
        children = [
            HierarchyNode(
                key=a.id, name=a.symbol.upper(), value=metric_value(a, metric), payload=a
            )
            for a in visible
        ]

    ordered = _sorted(children)
    return HierarchyNode(
        key=ROOT_KEY,
        name=state.selected_sector or ROOT_KEY,
        value=sum(c.value for c in ordered),
        children=ordered,
    )
