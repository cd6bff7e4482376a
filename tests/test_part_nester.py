"""Tests for the part nester (nesting mode)."""
import asyncio
import math

import pytest

from sheetpack.core.exceptions import NoFittablePartsError
from sheetpack.packing import (
    MaterialSurface, PackingOptions, PackingState, Part, PartGeometry, PartNester,
    PartPlacementValidator, Rect, ResultComposer, SurfaceOccupancy,
)


def _nester(surface, parts=(), **options):
    nester = PartNester(surface, PackingOptions(**options))
    for part in parts:
        nester.add_part(part)
    return nester


# ============================================================
# Scenarios
# ============================================================

def test_two_parts_on_empty_sheet(sheet):
    nester = _nester(sheet, [PartGeometry("A", 400, 300), PartGeometry("B", 300, 300)], spacing=0)

    result = nester.run()

    assert result.state is PackingState.FINISHED
    assert result.placed_count == 2
    first = result.placed_parts[0]
    assert (first.part_id, first.x, first.y) == ("A", 0, 0)
    assert (result.placed_parts[1].x, result.placed_parts[1].y) == (400, 0)
    assert result.utilization == pytest.approx(210000 / 1000000)


def test_oversized_part_reported_unplaced(sheet):
    nester = _nester(sheet, [PartGeometry("big", 1200, 1100), PartGeometry("A", 400, 300)])

    result = nester.run()

    assert [p.part_id for p in result.placed_parts] == ["A"]
    assert result.unplaced_count == 1
    assert result.unplaced_parts[0].part_id == "big"
    assert result.unplaced_parts[0].reason.startswith("Too large")
    assert result.utilization == pytest.approx(120000 / 1000000)


def test_entirely_unfittable_part_set_raises(sheet):
    nester = _nester(sheet, [PartGeometry("big", 1200, 1200)])

    with pytest.raises(NoFittablePartsError):
        nester.run()


def test_empty_nester_finishes(sheet):
    result = _nester(sheet).run()

    assert result.state is PackingState.FINISHED
    assert result.placed_count == 0
    assert result.utilization == 0.0


def test_spacing_inflates_footprint(sheet):
    nester = _nester(sheet, [PartGeometry("A", 100, 50)], spacing=5)

    placed = nester.run().placed_parts[0]

    assert (placed.width, placed.height) == (110, 60)
    assert (placed.x, placed.y) == (5, 5)
    assert placed.base_area == 5000


def test_parts_sorted_by_base_area_ties_keep_input_order(sheet):
    parts = [
        PartGeometry("small", 100, 100),
        PartGeometry("tie_1", 200, 100),
        PartGeometry("large", 300, 300),
        PartGeometry("tie_2", 100, 200),
    ]

    result = _nester(sheet, parts).run()

    assert [p.part_id for p in result.placed_parts] == ["large", "tie_1", "tie_2", "small"]


# ============================================================
# Properties
# ============================================================

def test_placements_stay_in_bounds_and_never_overlap(sheet, overlap):
    sizes = [(310, 120), (90, 400), (250, 250), (120, 80), (400, 60), (75, 75), (180, 260),
             (60, 300), (220, 140), (130, 130), (500, 90), (45, 200)]
    parts = [PartGeometry(f"p{i}", w, h) for i, (w, h) in enumerate(sizes * 2)]

    result = _nester(sheet, parts, spacing=3, quality="fast").run()

    placed = result.placed_parts
    assert placed
    for i, a in enumerate(placed):
        assert a.x >= 0 and a.y >= 0
        assert a.x + a.width <= sheet.width + 1e-9
        assert a.y + a.height <= sheet.height + 1e-9
        for b in placed[i + 1:]:
            assert not overlap(a, b)
    assert result.placed_count + result.unplaced_count == len(parts)


def test_utilization_non_increasing_with_spacing(sheet, plates):
    utilizations = []
    for spacing in (0, 5, 20, 60):
        result = _nester(sheet, plates, spacing=spacing).run()
        utilizations.append(result.utilization)

    assert utilizations == sorted(utilizations, reverse=True)
    assert utilizations[0] == pytest.approx(0.6)
    assert utilizations[-1] < utilizations[0]


def test_grid_fallback_only_outside_fast_mode():
    surface = MaterialSurface(100, 100)
    part = Part("square", 30, 30, 900)

    found = {}
    for quality in ("fast", "balanced"):
        nester = PartNester(surface, PackingOptions(quality=quality))
        occupancy = SurfaceOccupancy(surface)
        # Central block: both structural anchors run off the sheet
        occupancy.commit(Rect(20, 20, 60, 60))
        found[quality] = nester._find_position(part, occupancy, PartPlacementValidator(occupancy))

    assert found["fast"] is None
    assert found["balanced"] == (0, 0)


# ============================================================
# Rotation
# ============================================================

def test_right_angle_rotation_turns_portrait_parts():
    surface = MaterialSurface(1000, 300)
    part = PartGeometry("tall", 200, 400)

    with pytest.raises(NoFittablePartsError):
        _nester(surface, [part], rotation="none").run()

    result = _nester(surface, [part], rotation="90").run()
    placed = result.placed_parts[0]
    assert placed.rotation == 90
    assert (placed.width, placed.height) == pytest.approx((400, 200))


def test_rotated_content_lands_inside_footprint():
    surface = MaterialSurface(1000, 300)
    result = _nester(surface, [PartGeometry("tall", 200, 400)], rotation="90", spacing=10).run()
    placed = result.placed_parts[0]
    transform = ResultComposer(surface, 10).transform_for(placed)

    corners = [transform.apply(p) for p in [(0, 0), (200, 0), (200, 400), (0, 400)]]

    xs = [x for x, _ in corners]
    ys = [y for _, y in corners]
    assert min(xs) == pytest.approx(placed.x + 10)
    assert max(xs) == pytest.approx(placed.x + placed.width - 10)
    assert min(ys) == pytest.approx(placed.y + 10)
    assert max(ys) == pytest.approx(placed.y + placed.height - 10)


def test_free_rotation_finds_tight_bounding_box():
    c = math.cos(math.radians(45))
    contour = [(0, 0), (100 * c, 100 * c), (100 * c - 20 * c, 100 * c + 20 * c), (-20 * c, 20 * c)]
    xs = [x for x, _ in contour]
    ys = [y for _, y in contour]
    part = PartGeometry("diagonal", max(xs) - min(xs), max(ys) - min(ys), contour=contour)

    result = _nester(MaterialSurface(200, 200), [part], rotation="all", quality="best").run()

    placed = result.placed_parts[0]
    assert placed.width == pytest.approx(100, abs=0.5)
    assert placed.height == pytest.approx(20, abs=0.5)
    assert placed.rotation != 0


# ============================================================
# Run control
# ============================================================

@pytest.mark.parametrize("n", [0, 1, 3])
def test_cancel_after_n_commits(sheet, n):
    placed = []
    options = dict(
        on_placement=placed.append,
        should_cancel=lambda: len(placed) >= n,
    )
    parts = [PartGeometry(f"p{i}", 100, 100) for i in range(8)]

    result = _nester(sheet, parts, **options).run()

    assert result.placed_count == n
    assert result.state is PackingState.CANCELLED


def test_stop_from_consumer(sheet, plates):
    nester = _nester(sheet, plates)
    nester.options = PackingOptions(on_placement=lambda part: nester.stop())

    result = nester.run()

    assert result.placed_count == 1
    assert result.state is PackingState.CANCELLED


def test_failing_consumer_does_not_abort(sheet, plates):
    def broken(progress):
        raise ValueError("ui gone")

    result = _nester(sheet, plates, on_progress=broken, progress_interval=1).run()

    assert result.state is PackingState.FINISHED
    assert result.placed_count == len(plates)
    assert result.callback_errors
    assert all(isinstance(e.original, ValueError) for e in result.callback_errors)


def test_progress_start_and_end(sheet, plates):
    snapshots = []
    result = _nester(sheet, plates, on_progress=snapshots.append, progress_interval=3).run()

    assert snapshots[0].fraction == 0.0
    assert snapshots[-1].fraction == 1.0
    assert snapshots[-1].placed_count == result.placed_count
    assert snapshots[-1].last_placement == result.placed_parts[-1]
    assert [s.processed_steps for s in snapshots] == [0, 3, 6, 9, 10]


def test_run_async_awaits_consumers(sheet, plates):
    seen = []

    async def consumer(part):
        await asyncio.sleep(0)
        seen.append(part.part_id)

    nester = _nester(sheet, plates, on_placement=consumer, yield_interval=2)
    result = asyncio.run(nester.run_async())

    assert seen == [p.part_id for p in result.placed_parts]
    assert result.state is PackingState.FINISHED


# ============================================================
# Inputs / document
# ============================================================

def test_add_part_variants(sheet):
    nester = PartNester(sheet)
    nester.add_part_from_dict({'name': 'plate', 'width': 100, 'height': 50}, quantity=2)
    assert nester.add_part_from_svg("bracket", '<svg viewBox="0 0 80 40"><rect width="80" height="40"/></svg>')
    assert not nester.add_part_from_svg("broken", "<g/>")

    result = nester.run()

    assert sorted(p.part_id for p in result.placed_parts) == ["bracket", "plate", "plate"]


def test_document_contains_one_group_per_part(sheet, plates):
    result = _nester(sheet, plates[:3], spacing=2).run()

    svg = result.to_svg()
    overlay = result.document.find_by_id("nested-parts")

    assert overlay is not None
    assert len(overlay.children) == 3
    assert svg.count("data-part-id=") == 3
    assert 'translate(4 4)' in svg


def test_nester_from_material_svg():
    nester = PartNester.from_material_svg('<svg width="500mm" height="400mm"><rect width="500" height="400"/></svg>')
    nester.add_part(PartGeometry("A", 100, 100))

    result = nester.run()

    assert (nester.surface.width, nester.surface.height) == (500, 400)
    assert result.document.get("viewBox") == "0 0 500 400"
    assert result.utilization == pytest.approx(10000 / 200000)


def test_repeated_runs_are_independent(sheet, plates):
    nester = _nester(sheet, plates)

    first = nester.run()
    second = nester.run()

    assert [(p.x, p.y) for p in first.placed_parts] == [(p.x, p.y) for p in second.placed_parts]
