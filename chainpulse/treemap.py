"""Squarified treemap layout (pure, synchronous).

Follows the classic squarify algorithm: children are taken in descending
order and grouped into rows along the shorter side of the remaining
rectangle for as long as adding a child does not worsen the row's worst
aspect ratio. Padding works like d3's treemap: each child is inset by half
the inner gap, and the parent box is grown by the same amount before the
outer padding is applied, so siblings end up ``inner`` pixels apart and
``outer`` pixels from the parent edge.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .config import LayoutConfig
from .models import HierarchyNode, LayoutCell, TreemapRect
from .navigation import NavigationState

DEFAULT_RATIO = 1.0

# Absorbs float noise so an edge sitting on an integer is not pushed a pixel.
_EPSILON = 1e-9

Box = tuple[float, float, float, float]


@dataclass(frozen=True)
class Padding:
    """Outer padding of the root box plus the gap between siblings."""

    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    inner: float = 0.0


def padding_for_state(state: NavigationState, config: LayoutConfig | None = None) -> Padding:
    """Padding for the current view; the label strip only exists inside a sector."""
    config = config or LayoutConfig()
    outer = float(config.outer_padding)
    return Padding(
        top=float(config.label_strip) if state.drilled_into_sector else 0.0,
        right=outer,
        bottom=outer,
        left=outer,
        inner=float(config.inner_padding),
    )


def _collapse(x0: float, y0: float, x1: float, y1: float) -> Box:
    if x1 < x0:
        x0 = x1 = (x0 + x1) / 2
    if y1 < y0:
        y0 = y1 = (y0 + y1) / 2
    return x0, y0, x1, y1


def _round_inward(box: Box) -> TreemapRect:
    """Integer rect that never extends past ``box``: left/top up, right/bottom down."""
    x0 = math.ceil(box[0] - _EPSILON)
    y0 = math.ceil(box[1] - _EPSILON)
    x1 = math.floor(box[2] + _EPSILON)
    y1 = math.floor(box[3] + _EPSILON)
    if x1 < x0:
        x1 = x0
    if y1 < y0:
        y1 = y0
    return TreemapRect(x0, y0, x1, y1)


def _clamp(rect: TreemapRect, bounds: TreemapRect) -> TreemapRect:
    """Pull ``rect`` inside ``bounds``; a rect wholly outside collapses onto its edge."""
    x0 = min(max(rect.x0, bounds.x0), bounds.x1)
    y0 = min(max(rect.y0, bounds.y0), bounds.y1)
    x1 = min(max(rect.x1, x0), bounds.x1)
    y1 = min(max(rect.y1, y0), bounds.y1)
    return TreemapRect(x0, y0, x1, y1)


def _padded_bounds(width: float, height: float, padding: Padding) -> TreemapRect:
    """The padded root box, kept inside the viewport even when padding overflows it."""
    x0 = min(padding.left, width)
    y0 = min(padding.top, height)
    x1 = min(max(x0, width - padding.right), width)
    y1 = min(max(y0, height - padding.bottom), height)
    return _round_inward((x0, y0, x1, y1))


def _dice(row: Sequence[HierarchyNode], total: float, box: Box) -> list[tuple[HierarchyNode, Box]]:
    """Lay ``row`` left to right across ``box``."""
    x0, y0, x1, y1 = box
    k = (x1 - x0) / total if total else 0.0
    placed = []
    x = x0
    for node in row:
        nx = x + node.value * k
        placed.append((node, (x, y0, nx, y1)))
        x = nx
    return placed


def _slice(row: Sequence[HierarchyNode], total: float, box: Box) -> list[tuple[HierarchyNode, Box]]:
    """Lay ``row`` top to bottom down ``box``."""
    x0, y0, x1, y1 = box
    k = (y1 - y0) / total if total else 0.0
    placed = []
    y = y0
    for node in row:
        ny = y + node.value * k
        placed.append((node, (x0, y, x1, ny)))
        y = ny
    return placed


def squarify_rows(
    nodes: Sequence[HierarchyNode], box: Box, ratio: float = DEFAULT_RATIO
) -> list[tuple[HierarchyNode, Box]]:
    """Assign a float box to each node; ``nodes`` must be in descending order."""
    x0, y0, x1, y1 = box
    n = len(nodes)
    value = sum(node.value for node in nodes)
    placed: list[tuple[HierarchyNode, Box]] = []
    i0 = i1 = 0

    while i0 < n:
        dx, dy = x1 - x0, y1 - y0

        sum_value = nodes[i1].value
        i1 += 1
        while not sum_value and i1 < n:
            sum_value = nodes[i1].value
            i1 += 1

        if sum_value <= 0 or value <= 0 or dx <= 0 or dy <= 0:
            # Nothing left to share out; the rest get empty boxes.
            placed.extend((node, (x0, y0, x0, y0)) for node in nodes[i0:])
            break

        min_value = max_value = sum_value
        alpha = max(dy / dx, dx / dy) / (value * ratio)
        beta = sum_value * sum_value * alpha
        min_ratio = max(max_value / beta, beta / min_value)

        while i1 < n:
            node_value = nodes[i1].value
            sum_value += node_value
            min_value = min(min_value, node_value)
            max_value = max(max_value, node_value)
            beta = sum_value * sum_value * alpha
            if min_value <= 0:
                new_ratio = math.inf
            else:
                new_ratio = max(max_value / beta, beta / min_value)
            if new_ratio > min_ratio:
                sum_value -= node_value
                break
            min_ratio = new_ratio
            i1 += 1

        row = nodes[i0:i1]
        if dx < dy:
            y_end = y0 + dy * sum_value / value
            placed.extend(_dice(row, sum_value, (x0, y0, x1, y_end)))
            y0 = y_end
        else:
            x_end = x0 + dx * sum_value / value
            placed.extend(_slice(row, sum_value, (x0, y0, x_end, y1)))
            x0 = x_end
        value -= sum_value
        i0 = i1

    return placed


def _position(
    node: HierarchyNode,
    box: Box,
    inset: float,
    padding: Padding,
    ratio: float,
    is_root: bool,
    bounds: TreemapRect,
    cells: list[LayoutCell],
) -> None:
    x0, y0, x1, y1 = _collapse(box[0] + inset, box[1] + inset, box[2] - inset, box[3] - inset)
    if node.is_leaf:
        cells.append(LayoutCell(node=node, rect=_clamp(_round_inward((x0, y0, x1, y1)), bounds)))
        return

    child_inset = padding.inner / 2
    # Outer padding belongs to the root box only; deeper levels keep the gap.
    outer = padding if is_root else Padding()
    inner_box = _collapse(
        x0 + outer.left - child_inset,
        y0 + outer.top - child_inset,
        x1 - outer.right + child_inset,
        y1 - outer.bottom + child_inset,
    )
    for child, child_box in squarify_rows(node.children, inner_box, ratio):
        _position(child, child_box, child_inset, padding, ratio, False, bounds, cells)


def squarify(
    root: HierarchyNode,
    width: float,
    height: float,
    padding: Padding | None = None,
    ratio: float = DEFAULT_RATIO,
) -> list[LayoutCell]:
    """Lay out every leaf of ``root`` inside a ``width`` x ``height`` box.

    Returns an empty list when there is nothing to draw: a non-positive
    viewport or a tree whose leaves weigh nothing.
    """
    if width <= 0 or height <= 0:
        return []
    if sum(leaf.value for leaf in root.leaves()) <= 0:
        return []

    padding = padding or Padding()
    bounds = _padded_bounds(float(width), float(height), padding)
    cells: list[LayoutCell] = []
    _position(root, (0.0, 0.0, float(width), float(height)), 0.0, padding, ratio, True, bounds, cells)
    return cells


def layout_for_state(
    root: HierarchyNode,
    width: float,
    height: float,
    state: NavigationState,
    config: LayoutConfig | None = None,
) -> list[LayoutCell]:
    return squarify(root, width, height, padding_for_state(state, config))
