"""Tests for candidate position generation."""
import numpy as np

from sheetpack.packing import AvailabilityMask, MaterialSurface, Rect
from sheetpack.packing.candidates import (
    TIER_EDGE, TIER_GRID, TIER_RUN_START, EdgeCache, grid_candidates,
    mask_row_candidates, nesting_candidates, snap_to_edges,
)


def test_nesting_origin_fallback_is_inset_by_spacing():
    assert nesting_candidates([], 5.0) == [(5.0, 5.0)]


def test_nesting_candidates_right_of_and_below_each_region():
    regions = [Rect(0, 0, 40, 30), Rect(40, 0, 10, 10)]

    assert nesting_candidates(regions, 0.0) == [(40, 0), (0, 30), (50, 0), (40, 10)]


def test_grid_candidates_bottom_left_order_within_bounds():
    points = list(grid_candidates(MaterialSurface(30, 20), 10, 10, 10))

    assert points == [(0, 0), (10, 0), (20, 0), (0, 10), (10, 10), (20, 10)]


def test_grid_candidates_start_offset():
    points = list(grid_candidates(MaterialSurface(30, 30), 10, 10, 10, start=5))

    assert points[0] == (5, 5)
    assert all(x + 10 <= 30 and y + 10 <= 30 for x, y in points)


def test_edge_cache_evicts_oldest_and_ignores_duplicates():
    cache = EdgeCache(capacity=2)
    cache.add(10, 5)
    cache.add(10, 7)
    cache.add(20, 9)
    cache.add(30, 9)

    assert cache.right_edges == [20, 30]
    assert cache.bottom_edges == [7, 9]
    assert len(cache) == 2


def _row_mask():
    values = np.ones((4, 20), dtype=bool)
    values[:, :5] = False
    return AvailabilityMask(values)


def test_mask_row_tiers_without_edge_cache():
    candidates = mask_row_candidates(_row_mask(), 0, 10)

    assert candidates == [(5, TIER_RUN_START), (0, TIER_GRID), (10, TIER_GRID)]


def test_mask_row_tiers_with_edge_cache():
    cache = EdgeCache()
    cache.add(12, 3)
    cache.add(3, 3)

    candidates = mask_row_candidates(_row_mask(), 0, 10, cache)

    # Edge 3 lies on an obstacle and is dropped
    assert candidates == [(12, TIER_EDGE), (5, TIER_RUN_START), (0, TIER_GRID), (10, TIER_GRID)]


def test_mask_row_run_starts_follow_claimed_cells():
    mask = AvailabilityMask(np.ones((10, 40), dtype=bool))
    mask.commit(0, 0, 10, 10, 0, 0)

    candidates = mask_row_candidates(mask, 0, 10)

    assert candidates[0] == (10, TIER_RUN_START)


def test_snap_to_nearest_edges():
    mask = AvailabilityMask(np.ones((100, 100), dtype=bool))
    cache = EdgeCache()
    cache.add(50, 50)

    assert snap_to_edges(mask, cache, 45, 40, 20, 20, 10, 10) == (50, 50)
    # Out of reach (more than two steps away)
    assert snap_to_edges(mask, cache, 20, 20, 20, 20, 10, 10) == (20, 20)


def test_snap_requires_room_for_the_rectangle():
    mask = AvailabilityMask(np.ones((100, 100), dtype=bool))
    cache = EdgeCache()
    cache.add(90, 0)

    assert snap_to_edges(mask, cache, 85, 0, 20, 20, 10, 10) == (85, 0)
