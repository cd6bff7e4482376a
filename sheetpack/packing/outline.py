"""
Part outline helpers (shapely).

Rotation is about the local center of the part's bounding box, in SVG
coordinates (y down). The same matrix is used by shapely, so rotated bounds
computed here match the `rotate(a cx cy)` transform written by the composer.
"""

import logging
import math
from typing import List, Tuple

from shapely import affinity
from shapely.geometry import Polygon, box

from .models import PartGeometry

logger = logging.getLogger(__name__)


def outline_polygon(geometry: PartGeometry) -> Polygon:
    """Outline polygon, or the bounding box when no usable contour exists."""
    if len(geometry.contour) >= 3:
        polygon = Polygon(geometry.contour)
        if polygon.is_valid and not polygon.is_empty and polygon.area > 0:
            return polygon
        logger.debug(f"{geometry.part_id}: invalid contour, using bounding box")
    return box(0.0, 0.0, geometry.width, geometry.height)


def rotated_bounds(geometry: PartGeometry, angle: float) -> Tuple[float, float, float, float]:
    """(min_x, min_y, width, height) of the outline rotated about its local center."""
    polygon = outline_polygon(geometry)
    if angle % 360 == 0:
        min_x, min_y, max_x, max_y = polygon.bounds
    else:
        center = (geometry.width / 2.0, geometry.height / 2.0)
        min_x, min_y, max_x, max_y = affinity.rotate(polygon, angle, origin=center).bounds
    # Trig noise (e.g. 1e-14 at 90 degrees) would break exact fits
    return (round(min_x, 9), round(min_y, 9),
            round(max_x - min_x, 9), round(max_y - min_y, 9))


def _aligned_angle(polygon: Polygon) -> float:
    """Angle aligning the longest edge of the minimum rotated rectangle with +X."""
    rect = polygon.minimum_rotated_rectangle
    coords = list(getattr(rect, 'exterior', rect).coords)
    if len(coords) < 4:
        return 0.0
    best_len = -1.0
    best_ang = 0.0
    for (x1, y1), (x2, y2) in zip(coords, coords[1:]):
        length = math.hypot(x2 - x1, y2 - y1)
        if length > best_len:
            best_len = length
            best_ang = math.degrees(math.atan2(y2 - y1, x2 - x1))
    return -best_ang


def candidate_angles(step: float) -> List[float]:
    """Sweep 0 <= a < 180 at the given step."""
    count = max(1, int(math.ceil(180.0 / step)))
    return [round(i * step, 6) for i in range(count) if i * step < 180.0]


def min_area_angle(geometry: PartGeometry, step: float) -> float:
    """
    Rotation giving the smallest bounding box, turned landscape.

    Sweeps the angle grid and the minimum-rotated-rectangle alignment of the
    outline; ties keep the smaller angle. Result is normalized to [0, 360).
    """
    polygon = outline_polygon(geometry)
    angles = candidate_angles(step)
    aligned = round(_aligned_angle(polygon) % 180.0, 6)
    if aligned not in angles:
        angles.append(aligned)

    best_angle = 0.0
    best_area = None
    for angle in sorted(angles):
        _, _, w, h = rotated_bounds(geometry, angle)
        area = w * h
        if best_area is None or area < best_area - 1e-9:
            best_area = area
            best_angle = angle

    _, _, w, h = rotated_bounds(geometry, best_angle)
    if h > w + 1e-9:
        best_angle += 90.0
    return best_angle % 360.0
