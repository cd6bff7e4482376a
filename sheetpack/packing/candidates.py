"""
Candidate Positions
===================
Positions to try next, in priority order.

Nesting:
    right-of / below each committed footprint, origin fallback, grid fallback
Mask:
    per row, three tiers: cached right edges > free-run starts > uniform grid
"""

import logging
import math
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np

from sheetpack.config import settings
from .geometry import AvailabilityMask
from .models import MaterialSurface, Rect

logger = logging.getLogger(__name__)

# Tier numbers of mask-mode candidates
TIER_EDGE = 1
TIER_RUN_START = 2
TIER_GRID = 3


# ============================================================
# NESTING
# ============================================================

def nesting_candidates(regions: List[Rect], spacing: float) -> List[Tuple[float, float]]:
    """Right-of and below every committed region, else the inset origin."""
    points: List[Tuple[float, float]] = []
    for region in regions:
        points.append((region.right, region.y))
        points.append((region.x, region.bottom))
    if not points:
        points.append((spacing, spacing))
    return points


def grid_candidates(surface: MaterialSurface, width: float, height: float,
                    step: float, start: float = 0.0) -> Iterator[Tuple[float, float]]:
    """
    Uniform grid over every position where a width x height footprint still
    fits, row by row (smallest y first, then smallest x).
    """
    if step <= 0:
        return
    max_x = surface.width - width
    max_y = surface.height - height
    y = start
    while y <= max_y + 1e-9:
        x = start
        while x <= max_x + 1e-9:
            yield x, y
            x += step
        y += step


# ============================================================
# MASK
# ============================================================

class EdgeCache:
    """
    Recently committed right and bottom edges (cell units).

    Insertion ordered, bounded; the oldest edge is evicted first and an edge
    already present keeps its original position.
    """

    def __init__(self, capacity: int = settings.EDGE_CACHE_SIZE):
        self.capacity = capacity
        self.right_edges: List[int] = []
        self.bottom_edges: List[int] = []

    def add(self, right: int, bottom: int) -> None:
        self._push(self.right_edges, right)
        self._push(self.bottom_edges, bottom)

    def _push(self, edges: List[int], value: int) -> None:
        if value in edges:
            return
        edges.append(value)
        if len(edges) > self.capacity:
            edges.pop(0)

    def __len__(self) -> int:
        return len(self.right_edges)


def _nearest_edge(edges: List[int], origin: int, limit: float,
                  accept: Callable[[int], bool],
                  should_cancel: Callable[[], bool]) -> Optional[int]:
    best = None
    best_distance = math.inf
    for edge in edges:
        if should_cancel():
            break
        distance = abs(edge - origin)
        if distance > limit or distance >= best_distance:
            continue
        if accept(edge):
            best = edge
            best_distance = distance
            if distance <= 1:
                break
    return best


def snap_to_edges(mask: AvailabilityMask, cache: EdgeCache, x: int, y: int,
                  w: int, h: int, step_x: int, step_y: int,
                  should_cancel: Callable[[], bool] = lambda: False) -> Tuple[int, int]:
    """
    Move an anchor onto the nearest cached right edge (x), then bottom edge
    (y), within two steps (and a quarter of the mask), where the cell is free
    and the rectangle still fits.
    """
    limit_x = min(2 * step_x, mask.width / 4.0)
    edge_x = _nearest_edge(
        cache.right_edges, x, limit_x,
        lambda e: 0 <= e < mask.width and e + w <= mask.width and mask.available_at(e, y),
        should_cancel,
    )
    if edge_x is not None:
        x = edge_x

    limit_y = min(2 * step_y, mask.height / 4.0)
    edge_y = _nearest_edge(
        cache.bottom_edges, y, limit_y,
        lambda e: 0 <= e < mask.height and e + h <= mask.height and mask.available_at(x, e),
        should_cancel,
    )
    if edge_y is not None:
        y = edge_y
    return x, y


def mask_row_candidates(mask: AvailabilityMask, y: int, step_x: int,
                        edges: Optional[EdgeCache] = None) -> List[Tuple[int, int]]:
    """
    Ordered (x, tier) anchors for row y.

    Tier 1: cached right edges free in this row (only with an edge cache).
    Tier 2: starts of free runs, sampled at half the step.
    Tier 3: grid at the full step.
    Duplicate x keeps its highest-priority tier; ascending x inside a tier.
    """
    row = mask.available_row(y)
    seen = set()
    tiers: List[List[int]] = [[], [], []]

    if edges is not None:
        for edge in edges.right_edges:
            if 0 <= edge < mask.width and edge not in seen and row[edge]:
                tiers[0].append(edge)
                seen.add(edge)

    fine_step = max(1, step_x // 2)
    samples = np.arange(0, mask.width, fine_step)
    previous = np.zeros_like(samples, dtype=bool)
    previous[1:] = row[samples[1:] - 1]
    for x in samples[row[samples] & ~previous]:
        x = int(x)
        if x not in seen:
            tiers[1].append(x)
            seen.add(x)

    for x in range(0, mask.width, max(1, step_x)):
        if x not in seen:
            tiers[2].append(x)
            seen.add(x)

    ordered: List[Tuple[int, int]] = []
    for tier_index, xs in enumerate(tiers, start=TIER_EDGE):
        ordered.extend((x, tier_index) for x in sorted(xs))
    return ordered
