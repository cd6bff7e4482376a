"""
Placement Validation
====================
Read-only admissibility checks. Committing is left to the drivers.

Mask mode applies a dual halo around each candidate:
    - obstacle band (obstacle gap): no pristine obstacle
    - neighbour band (neighbour gap): no interior of a placed item
Bands are clipped at the mask border; the border is not an obstacle.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from .geometry import AvailabilityMask, SurfaceOccupancy
from .models import Rect

logger = logging.getLogger(__name__)


class Rejection(Enum):
    """Reason a candidate was rejected"""
    OUT_OF_BOUNDS = "out_of_bounds"
    OVERLAP = "overlap"
    OBSTACLE_HALO = "obstacle_halo"
    NEIGHBOR_HALO = "neighbor_halo"
    COVERAGE = "coverage"


class PartPlacementValidator:
    """Nesting: footprint inside the sheet and clear of committed footprints."""

    def __init__(self, occupancy: SurfaceOccupancy):
        self.occupancy = occupancy

    def rejection(self, rect: Rect) -> Optional[Rejection]:
        if not self.occupancy.fits_within_surface(rect):
            return Rejection.OUT_OF_BOUNDS
        if self.occupancy.overlaps(rect):
            return Rejection.OVERLAP
        return None

    def is_valid(self, rect: Rect) -> bool:
        return self.rejection(rect) is None


class MaskPlacementValidator:
    """
    Mask mode: bounds, overlap with claimed cells, dual halo and coverage.

    Gaps are in cells per axis.
    """

    def __init__(self, mask: AvailabilityMask,
                 neighbor_gap: Tuple[int, int] = (0, 0),
                 obstacle_gap: Tuple[int, int] = (0, 0),
                 coverage_threshold: float = 1.0):
        self.mask = mask
        self.neighbor_gap = neighbor_gap
        self.obstacle_gap = obstacle_gap
        self.coverage_threshold = coverage_threshold

    def rejection(self, x: int, y: int, w: int, h: int) -> Optional[Rejection]:
        mask = self.mask
        if not mask.fits_within_surface(x, y, w, h):
            return Rejection.OUT_OF_BOUNDS
        if mask.overlaps(x, y, w, h):
            return Rejection.OVERLAP
        if mask.obstacle_in(x, y, w, h, *self.obstacle_gap):
            return Rejection.OBSTACLE_HALO
        if mask.occupied_in(x, y, w, h, *self.neighbor_gap):
            return Rejection.NEIGHBOR_HALO
        if mask.coverage(x, y, w, h) < self.coverage_threshold - 1e-12:
            return Rejection.COVERAGE
        return None

    def is_valid(self, x: int, y: int, w: int, h: int) -> bool:
        return self.rejection(x, y, w, h) is None
