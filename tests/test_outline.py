"""Tests for outline rotation helpers."""
import pytest

from sheetpack.packing import PartGeometry
from sheetpack.packing.outline import candidate_angles, min_area_angle, outline_polygon, rotated_bounds


def test_rotated_bounds_about_local_center():
    geometry = PartGeometry("tall", 200, 400)

    assert rotated_bounds(geometry, 0) == (0, 0, 200, 400)
    assert rotated_bounds(geometry, 90) == pytest.approx((-100, 100, 400, 200))


def test_invalid_contour_falls_back_to_box():
    geometry = PartGeometry("line", 10, 5, contour=[(0, 0), (10, 5), (0, 0)])

    assert outline_polygon(geometry).bounds == (0, 0, 10, 5)


def test_candidate_angles_cover_half_turn():
    angles = candidate_angles(15)

    assert angles[0] == 0
    assert angles[-1] == 165
    assert len(angles) == 12


def test_min_area_angle_prefers_landscape():
    assert min_area_angle(PartGeometry("wide", 100, 20), 15) == 0.0
    assert min_area_angle(PartGeometry("tall", 20, 100), 15) == 90.0
