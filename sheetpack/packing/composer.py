"""
Result Composer
===============
Assembles committed placements into the mode-specific output.

Nesting:
    one SVG document = material + <g id="nested-parts"> overlay, one group per
    placed part with `translate(...) rotate(a cx cy)`
    optional in-memory DXF (ezdxf) of the same layout
Mask:
    ordered RectangleSuggestion list
"""

import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import ezdxf
from ezdxf import units
from shapely import affinity

from .models import MaterialSurface, PlacedPart, RectangleSuggestion
from .outline import outline_polygon
from .svg_document import SvgNode, parse_svg

logger = logging.getLogger(__name__)

NESTED_GROUP_ID = "nested-parts"

# DXF colors (ACI)
COLOR_SHEET = 7
COLOR_PART = 3


def _fmt(value: float) -> str:
    text = f"{value:.4f}".rstrip('0').rstrip('.')
    return "0" if text in ("", "-0") else text


@dataclass(frozen=True)
class Transform:
    """
    Placement of a part's content on the sheet.

    The content is first rotated by `angle` degrees about (cx, cy), its local
    center, then translated by (tx, ty). SVG applies the rightmost transform
    first, so this reads `translate(tx ty) rotate(angle cx cy)`.
    """
    tx: float
    ty: float
    angle: float = 0.0
    cx: float = 0.0
    cy: float = 0.0

    def to_svg(self) -> str:
        text = f"translate({_fmt(self.tx)} {_fmt(self.ty)})"
        if self.angle % 360:
            text += f" rotate({_fmt(self.angle)} {_fmt(self.cx)} {_fmt(self.cy)})"
        return text

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        x, y = point
        if self.angle % 360:
            rad = math.radians(self.angle)
            cos_a, sin_a = math.cos(rad), math.sin(rad)
            dx, dy = x - self.cx, y - self.cy
            x = self.cx + dx * cos_a - dy * sin_a
            y = self.cy + dx * sin_a + dy * cos_a
        return x + self.tx, y + self.ty


class ResultComposer:
    """Builds nesting documents and mask suggestion lists."""

    def __init__(self, surface: MaterialSurface, spacing: float = 0.0,
                 material_svg: Optional[str] = None):
        self.surface = surface
        self.spacing = spacing
        self.material_svg = material_svg

    # ============================================================
    # Nesting
    # ============================================================

    def transform_for(self, part: PlacedPart) -> Transform:
        """Footprint position + spacing inset, compensated for the rotated content offset."""
        ox, oy = part.content_offset
        geometry = part.geometry
        cx = geometry.width / 2.0 if geometry else 0.0
        cy = geometry.height / 2.0 if geometry else 0.0
        return Transform(
            tx=part.x + self.spacing - ox,
            ty=part.y + self.spacing - oy,
            angle=part.rotation,
            cx=cx,
            cy=cy,
        )

    def material_document(self) -> SvgNode:
        """Material SVG as a tree, or a generated sheet rectangle."""
        if self.material_svg:
            try:
                root = parse_svg(self.material_svg)
            except ET.ParseError as e:
                logger.warning(f"Material SVG not parsable ({e}), generating sheet outline")
            else:
                if root.get('viewBox') is None:
                    root.set('viewBox', f"0 0 {_fmt(self.surface.width)} {_fmt(self.surface.height)}")
                return root

        w, h = _fmt(self.surface.width), _fmt(self.surface.height)
        root = SvgNode('svg', {'width': w, 'height': h, 'viewBox': f"0 0 {w} {h}"})
        root.append(SvgNode('rect', {
            'id': 'material', 'x': '0', 'y': '0', 'width': w, 'height': h,
            'fill': 'none', 'stroke': 'black',
        }))
        return root

    def part_group(self, part: PlacedPart) -> SvgNode:
        group = SvgNode('g', {
            'transform': self.transform_for(part).to_svg(),
            'data-part-id': part.part_id,
        })
        geometry = part.geometry
        content = self._part_content(part)
        if geometry is not None and any(geometry.origin):
            x0, y0 = geometry.origin
            inner = SvgNode('g', {'transform': f"translate({_fmt(-x0)} {_fmt(-y0)})"})
            inner.children.extend(content)
            group.append(inner)
        else:
            group.children.extend(content)
        return group

    def _part_content(self, part: PlacedPart) -> List[SvgNode]:
        geometry = part.geometry
        if geometry is not None and geometry.svg:
            try:
                return parse_svg(geometry.svg).children
            except ET.ParseError as e:
                logger.warning(f"{part.part_id}: SVG fragment not parsable ({e}), drawing outline")
        if geometry is not None and len(geometry.contour) >= 3:
            points = " ".join(f"{_fmt(x)},{_fmt(y)}" for x, y in geometry.contour)
            return [SvgNode('polygon', {'points': points, 'fill': 'none', 'stroke': 'blue'})]
        width = geometry.width if geometry else part.width - 2 * self.spacing
        height = geometry.height if geometry else part.height - 2 * self.spacing
        return [SvgNode('rect', {
            'x': '0', 'y': '0', 'width': _fmt(width), 'height': _fmt(height),
            'fill': 'none', 'stroke': 'blue',
        })]

    def compose_nesting(self, placed: Sequence[PlacedPart]) -> SvgNode:
        """Material document with every placed part in one overlay group."""
        root = self.material_document()
        overlay = root.append(SvgNode('g', {'id': NESTED_GROUP_ID}))
        for part in placed:
            overlay.append(self.part_group(part))
        logger.debug(f"→ Composed document with {len(placed)} parts")
        return root

    def utilization(self, placed: Sequence[PlacedPart]) -> float:
        """Sum of base areas / material area, clamped to [0, 1]."""
        used = sum(p.base_area for p in placed)
        return max(0.0, min(used / self.surface.area, 1.0))

    def placed_outline(self, part: PlacedPart) -> List[Tuple[float, float]]:
        """Part outline in sheet coordinates (y down)."""
        geometry = part.geometry
        if geometry is None:
            s = self.spacing
            return [(part.x + s, part.y + s), (part.x + part.width - s, part.y + s),
                    (part.x + part.width - s, part.y + part.height - s),
                    (part.x + s, part.y + part.height - s)]
        transform = self.transform_for(part)
        polygon = outline_polygon(geometry)
        if transform.angle % 360:
            polygon = affinity.rotate(polygon, transform.angle, origin=(transform.cx, transform.cy))
        polygon = affinity.translate(polygon, transform.tx, transform.ty)
        return list(polygon.exterior.coords)[:-1]

    def build_dxf(self, placed: Sequence[PlacedPart]):
        """
        Layout as an in-memory ezdxf drawing: sheet frame plus part outlines.

        DXF is y-up, so sheet y is mirrored (y_dxf = height - y). The caller
        saves it (`doc.saveas(...)`) if needed.
        """
        doc = ezdxf.new('R2010')
        doc.units = units.MM
        msp = doc.modelspace()
        height = self.surface.height

        msp.add_lwpolyline([
            (0, 0),
            (self.surface.width, 0),
            (self.surface.width, height),
            (0, height),
        ], close=True, dxfattribs={'color': COLOR_SHEET})

        for part in placed:
            outline = [(x, height - y) for x, y in self.placed_outline(part)]
            if len(outline) >= 3:
                msp.add_lwpolyline(outline, close=True, dxfattribs={'color': COLOR_PART})

        logger.info(f"DXF layout: {len(placed)} parts on {self.surface.width:g}x{height:g}")
        return doc

    # ============================================================
    # Mask
    # ============================================================

    @staticmethod
    def compose_mask(suggestions: Sequence[RectangleSuggestion]) -> List[RectangleSuggestion]:
        """Suggestions in commit order."""
        return list(suggestions)
