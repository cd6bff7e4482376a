"""
Occupancy Model
===============
Authoritative occupancy for one packing run.

- SurfaceOccupancy: committed footprints on a material sheet (nesting)
- AvailabilityMask: per-cell bitmap of a usable region (mask auto-fill)

Both are owned by the run that created them and mutated in place.
"""

import logging
from typing import List, Optional

import numpy as np

from sheetpack.config import settings
from sheetpack.core.exceptions import ConfigurationError
from .models import EPS, MaterialSurface, Rect

logger = logging.getLogger(__name__)


# ============================================================
# NESTING
# ============================================================

class SurfaceOccupancy:
    """Append-only list of committed footprints on a sheet."""

    def __init__(self, surface: MaterialSurface):
        self.surface = surface
        self.regions: List[Rect] = []

    def fits_within_surface(self, rect: Rect) -> bool:
        return (rect.x >= -EPS and rect.y >= -EPS and
                rect.right <= self.surface.width + EPS and
                rect.bottom <= self.surface.height + EPS)

    def overlaps(self, rect: Rect) -> bool:
        return any(rect.intersects(region) for region in self.regions)

    def commit(self, rect: Rect) -> None:
        self.regions.append(rect)

    def __len__(self) -> int:
        return len(self.regions)


# ============================================================
# MASK
# ============================================================

class AvailabilityMask:
    """
    Availability bitmap with pristine obstacle information.

    Boolean layers, indexed [row, column]:
        pristine  - usable cells of the obstacle bitmap, never modified
        consumed  - pristine-usable cells the input marks unusable (taken
                    before this run)
        claimed   - cells taken by committed interiors and their neighbour halo
        occupied  - committed interiors only

    A cell is available when it is usable in the input and not claimed.
    Consumed cells count as occupied; pristine obstacles are left to the
    coverage and obstacle band checks.
    """

    def __init__(self, usable: np.ndarray, pristine: Optional[np.ndarray] = None):
        usable = np.array(usable, dtype=bool, copy=True)
        if usable.ndim != 2 or usable.size == 0:
            raise ConfigurationError('mask', usable.shape, "expected a non-empty 2D bitmap")
        if pristine is None:
            pristine = usable.copy()
        else:
            pristine = np.array(pristine, dtype=bool, copy=True)
            if pristine.shape != usable.shape:
                raise ConfigurationError('pristine', pristine.shape,
                                         f"shape differs from mask {usable.shape}")

        self.height, self.width = usable.shape
        self._usable = usable
        self._pristine = pristine
        self._pristine.setflags(write=False)
        self._consumed = ~usable & pristine
        self._consumed.setflags(write=False)
        self._claimed = np.zeros_like(usable)
        self._occupied = np.zeros_like(usable)

        # Summed-area table of pristine usable cells, padded with a zero row/column
        self._sat = np.zeros((self.height + 1, self.width + 1), dtype=np.int64)
        self._sat[1:, 1:] = pristine.astype(np.int64).cumsum(axis=0).cumsum(axis=1)

    @classmethod
    def from_values(cls, values, width: int, height: int,
                    threshold: int = settings.MASK_USABLE_THRESHOLD,
                    pristine=None) -> 'AvailabilityMask':
        """
        Build a mask from a flat (row-major) or 2D sequence.

        Boolean values are taken as-is; numeric values are usable when
        strictly greater than `threshold` (8-bit grey masks).
        """
        if width <= 0 or height <= 0:
            raise ConfigurationError('mask_size', (width, height), "must be positive")
        return cls(_to_usable(values, width, height, threshold, 'mask'),
                   None if pristine is None
                   else _to_usable(pristine, width, height, threshold, 'pristine'))

    # ----- queries -----

    @property
    def pristine(self) -> np.ndarray:
        return self._pristine

    def available_at(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            return False
        return bool(self._usable[y, x] and not self._claimed[y, x])

    def available_row(self, y: int) -> np.ndarray:
        """Availability of one row as a boolean vector."""
        return self._usable[y] & ~self._claimed[y]

    def fits_within_surface(self, x: int, y: int, w: int, h: int) -> bool:
        return x >= 0 and y >= 0 and w > 0 and h > 0 and x + w <= self.width and y + h <= self.height

    def overlaps(self, x: int, y: int, w: int, h: int) -> bool:
        """Any cell of the rectangle consumed, or claimed by a commit or its halo."""
        return bool(self._claimed[y:y + h, x:x + w].any() or
                    self._consumed[y:y + h, x:x + w].any())

    def coverage(self, x: int, y: int, w: int, h: int) -> float:
        """Share of pristine-usable cells inside the rectangle."""
        if w <= 0 or h <= 0:
            return 0.0
        s = self._sat
        total = s[y + h, x + w] - s[y, x + w] - s[y + h, x] + s[y, x]
        return float(total) / float(w * h)

    def obstacle_in(self, x: int, y: int, w: int, h: int, band_x: int, band_y: int) -> bool:
        """
        Pristine obstacle in the four side bands of the rectangle (clipped at
        the border). Corner blocks are not part of the bands.
        """
        if band_x <= 0 and band_y <= 0:
            return False
        x0, y0, x1, y1 = self._expand(x, y, w, h, band_x, band_y)
        # left/right bands
        sides = ~self._pristine[y:y + h, x0:x1]
        sides[:, x - x0:x - x0 + w] = False
        if sides.any():
            return True
        # top/bottom bands
        ends = ~self._pristine[y0:y1, x:x + w]
        ends[y - y0:y - y0 + h, :] = False
        return bool(ends.any())

    def occupied_in(self, x: int, y: int, w: int, h: int, band_x: int, band_y: int) -> bool:
        """Placed interior or consumed cell inside the rectangle grown by the band."""
        x0, y0, x1, y1 = self._expand(x, y, w, h, band_x, band_y)
        return bool(self._occupied[y0:y1, x0:x1].any() or
                    self._consumed[y0:y1, x0:x1].any())

    def occupied_count(self) -> int:
        return int(self._occupied.sum())

    # ----- mutation -----

    def commit(self, x: int, y: int, w: int, h: int, halo_x: int, halo_y: int) -> None:
        """Mark the interior occupied and the interior plus halo claimed."""
        x0, y0, x1, y1 = self._expand(x, y, w, h, halo_x, halo_y)
        self._occupied[y:y + h, x:x + w] = True
        self._claimed[y0:y1, x0:x1] = True
        logger.debug(f"[Mask] commit ({x},{y}) {w}x{h} halo {halo_x}x{halo_y}")

    def _expand(self, x, y, w, h, band_x, band_y):
        return (max(0, x - band_x), max(0, y - band_y),
                min(self.width, x + w + band_x), min(self.height, y + h + band_y))


def _to_usable(values, width: int, height: int, threshold: int, name: str) -> np.ndarray:
    arr = np.asarray(values)
    if arr.size != width * height:
        raise ConfigurationError(name, arr.size, f"expected {width * height} cells ({width}x{height})")
    arr = arr.reshape(height, width)
    if arr.dtype == bool:
        return arr.copy()
    return arr > threshold
