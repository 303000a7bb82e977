"""Drill-down navigation state machine.

One :class:`NavigationController` owns the current :class:`NavigationState`.
Every action replaces the state with a new frozen value and notifies the
subscribers; consumers never mutate fields directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

ALL_ECOSYSTEMS = "all"


class ViewMode(str, Enum):
    SECTOR = "sector"
    TOKEN = "token"


class SizingMetric(str, Enum):
    MARKET_CAP = "market_cap"
    VOLUME_24H = "volume_24h"


class Timeframe(str, Enum):
    ONE_HOUR = "1h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"


@dataclass(frozen=True)
class NavigationState:
    view_mode: ViewMode = ViewMode.TOKEN
    selected_sector: str | None = None
    ecosystem_filter: str = ALL_ECOSYSTEMS
    sizing_metric: SizingMetric = SizingMetric.MARKET_CAP
    timeframe: Timeframe = Timeframe.ONE_DAY
    pinned_asset_id: str | None = None
    selected_asset_id: str | None = None

    @property
    def drilled_into_sector(self) -> bool:
        return self.view_mode is ViewMode.TOKEN and self.selected_sector is not None


Listener = Callable[[NavigationState], None]


class NavigationController:
    """Owns the navigation state and exposes the allowed transitions."""

    def __init__(self, initial: NavigationState | None = None) -> None:
        self._state = initial or NavigationState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> NavigationState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, **changes) -> NavigationState:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return self._state
        self._state = new_state
        logger.debug("Navigation state -> %s", new_state)
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.error("Navigation listener failed: %s", e)
        return new_state

    # ------------------------------------------------------------------
    # Drill-down
    # ------------------------------------------------------------------

    def enter_sector(self, name: str) -> NavigationState:
        return self._set(view_mode=ViewMode.TOKEN, selected_sector=name)

    def enter_ecosystem_view(self) -> NavigationState:
        return self._set(view_mode=ViewMode.TOKEN, selected_sector=None)

    def go_back_to_sectors(self) -> NavigationState:
        return self._set(view_mode=ViewMode.SECTOR, selected_sector=None)

    def set_ecosystem_filter(self, ecosystem: str) -> NavigationState:
        """Set the ecosystem filter; changing it always resets drill-down."""
        ecosystem = (ecosystem or ALL_ECOSYSTEMS).lower()
        view_mode = ViewMode.SECTOR if ecosystem == ALL_ECOSYSTEMS else ViewMode.TOKEN
        return self._set(
            ecosystem_filter=ecosystem, view_mode=view_mode, selected_sector=None
        )

    # ------------------------------------------------------------------
    # Plain field assignment
    # ------------------------------------------------------------------

    def set_sizing_metric(self, metric: SizingMetric | str) -> NavigationState:
        return self._set(sizing_metric=SizingMetric(metric))

    def set_timeframe(self, timeframe: Timeframe | str) -> NavigationState:
        return self._set(timeframe=Timeframe(timeframe))

    # ------------------------------------------------------------------
    # Pinning / selection
    # ------------------------------------------------------------------

    def pin(self, asset_id: str) -> NavigationState:
        """Pin ``asset_id``; pinning the already pinned asset unpins it."""
        if self._state.pinned_asset_id == asset_id:
            return self.unpin()
        return self._set(pinned_asset_id=asset_id)

    def unpin(self) -> NavigationState:
        return self._set(pinned_asset_id=None)

    def preview_target(self, hovered_id: str | None) -> str | None:
        """Asset a hover preview should show: the pinned one wins while pinned."""
        if self._state.pinned_asset_id is not None:
            return self._state.pinned_asset_id
        return hovered_id

    def select_asset(self, asset_id: str) -> NavigationState:
        return self._set(selected_asset_id=asset_id)

    def close_detail(self) -> NavigationState:
        return self._set(selected_asset_id=None)
