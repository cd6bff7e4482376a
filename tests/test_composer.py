"""Tests for the result composer (SVG document, DXF, transforms)."""
import pytest
from ezdxf import units

from sheetpack.packing import MaterialSurface, PartGeometry, PlacedPart, ResultComposer, Transform


def _placed(geometry, x=0.0, y=0.0, spacing=0.0):
    return PlacedPart(
        part_id=geometry.part_id, x=x, y=y,
        width=geometry.width + 2 * spacing, height=geometry.height + 2 * spacing,
        rotation=0.0, base_area=geometry.base_area,
        geometry=geometry,
    )


# ============================================================
# Transform
# ============================================================

def test_transform_svg_text():
    assert Transform(10, 20).to_svg() == "translate(10 20)"
    assert Transform(1.5, 0, 90, 100, 200).to_svg() == "translate(1.5 0) rotate(90 100 200)"
    assert Transform(3, 4, 360, 1, 1).to_svg() == "translate(3 4)"


def test_transform_apply_rotates_about_center():
    transform = Transform(0, 0, 90, 1, 1)

    x, y = transform.apply((2, 1))

    assert (x, y) == (pytest.approx(1), pytest.approx(2))


# ============================================================
# Nesting document
# ============================================================

def test_group_transform_includes_spacing_inset():
    surface = MaterialSurface(100, 100)
    composer = ResultComposer(surface, spacing=5)

    group = composer.part_group(_placed(PartGeometry("A", 20, 10), spacing=5))

    assert group.get('transform') == "translate(5 5)"
    assert group.get('data-part-id') == "A"
    assert group.children[0].tag == 'rect'


def test_group_compensates_viewbox_origin():
    svg = '<svg viewBox="10 20 30 40"><rect x="10" y="20" width="30" height="40"/></svg>'
    geometry = PartGeometry.from_svg("framed", svg)
    composer = ResultComposer(MaterialSurface(100, 100))

    group = composer.part_group(_placed(geometry))

    inner = group.children[0]
    assert inner.tag == 'g'
    assert inner.get('transform') == "translate(-10 -20)"
    assert inner.children[0].tag == 'rect'


def test_contour_drawn_as_polygon():
    geometry = PartGeometry("tri", 10, 10, contour=[(0, 0), (10, 0), (0, 10)])
    composer = ResultComposer(MaterialSurface(100, 100))

    content = composer.part_group(_placed(geometry)).children

    assert content[0].tag == 'polygon'
    assert content[0].get('points') == "0,0 10,0 0,10"


def test_invalid_material_svg_falls_back_to_generated_sheet():
    composer = ResultComposer(MaterialSurface(200, 100), material_svg="<svg><rect")

    document = composer.compose_nesting([])

    assert document.get('viewBox') == "0 0 200 100"
    assert document.find_by_id('material') is not None
    assert document.find_by_id('nested-parts') is not None


def test_utilization_is_clamped():
    surface = MaterialSurface(10, 10)
    composer = ResultComposer(surface)
    parts = [_placed(PartGeometry(f"p{i}", 10, 10)) for i in range(3)]

    assert composer.utilization(parts) == 1.0
    assert composer.utilization([]) == 0.0


# ============================================================
# DXF
# ============================================================

def test_dxf_has_sheet_frame_and_one_outline_per_part():
    surface = MaterialSurface(100, 50)
    composer = ResultComposer(surface, spacing=1)
    parts = [
        _placed(PartGeometry("A", 20, 10), x=0, y=0, spacing=1),
        _placed(PartGeometry("B", 30, 10), x=22, y=0, spacing=1),
    ]

    doc = composer.build_dxf(parts)

    polylines = doc.modelspace().query('LWPOLYLINE')
    assert len(polylines) == 3
    assert doc.units == units.MM


def test_dxf_mirrors_y_axis():
    surface = MaterialSurface(100, 50)
    composer = ResultComposer(surface)
    part = _placed(PartGeometry("A", 20, 10))

    doc = composer.build_dxf([part])

    outline = list(doc.modelspace().query('LWPOLYLINE')[1].vertices())
    ys = sorted({round(y, 6) for x, y in outline})
    assert ys == [40, 50]


def test_placed_outline_follows_rotation():
    geometry = PartGeometry("tall", 20, 40)
    part = PlacedPart(part_id="tall", x=0, y=0, width=40, height=20, rotation=90,
                      base_area=800, content_offset=(-10, 10), geometry=geometry)

    outline = ResultComposer(MaterialSurface(100, 100)).placed_outline(part)

    xs = [x for x, _ in outline]
    ys = [y for _, y in outline]
    assert min(xs) == pytest.approx(0) and max(xs) == pytest.approx(40)
    assert min(ys) == pytest.approx(0) and max(ys) == pytest.approx(20)
