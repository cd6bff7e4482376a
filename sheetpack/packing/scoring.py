"""
Scoring
=======
Bottom-left position score and the mask-mode size catalogue.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, TypeVar

from .models import Orientation

T = TypeVar('T')


def position_score(x: float, y: float, surface_width: float) -> float:
    """Smaller y first, then smaller x."""
    return y * surface_width + x


def build_descending_range(max_value: float, min_value: float, step: float) -> List[float]:
    """
    max, max-step, ... down to min (rounded to 4 decimals), min always included.

    >>> build_descending_range(45, 20, 10)
    [45.0, 35.0, 25.0, 20.0]
    """
    if step <= 0:
        return sorted({round(float(max_value), 4), round(float(min_value), 4)}, reverse=True)
    values = []
    current = max_value
    while current >= min_value - 1e-9:
        values.append(round(float(current), 4))
        current -= step
    if not values or values[-1] != round(float(min_value), 4):
        values.append(round(float(min_value), 4))
    return sorted(set(values), reverse=True)


def size_pairs(widths: List[float], heights: List[float],
               orientation: Orientation) -> List[Tuple[float, float]]:
    """(width, height) pairs per orientation, deduplicated, largest area first (stable)."""
    pairs: List[Tuple[float, float]] = []
    seen = set()

    def add(w, h):
        key = (round(w, 3), round(h, 3))
        if key not in seen:
            seen.add(key)
            pairs.append((w, h))

    for w in widths:
        for h in heights:
            if orientation is Orientation.LANDSCAPE:
                add(w, h)
            elif orientation is Orientation.PORTRAIT:
                add(h, w)
            else:
                add(w, h)
                if w != h:
                    add(h, w)

    pairs.sort(key=lambda p: p[0] * p[1], reverse=True)
    return pairs


@dataclass(frozen=True)
class CatalogueEntry:
    """One rectangle size, in cells and in physical units."""
    width_cells: int
    height_cells: int
    width: float
    height: float

    @property
    def cell_area(self) -> int:
        return self.width_cells * self.height_cells


def build_size_catalogue(min_width: float, min_height: float,
                         max_width: float, max_height: float,
                         step: float, orientation: Orientation,
                         cells_per_unit_x: float, cells_per_unit_y: float) -> List[CatalogueEntry]:
    """
    Candidate sizes for mask mode, largest cell area first.

    Sizes are rounded to whole cells (at least one); sizes below the minimum
    in cells are dropped and duplicate cell sizes keep their first entry.
    """
    min_cells_x = max(1, round(min_width * cells_per_unit_x))
    min_cells_y = max(1, round(min_height * cells_per_unit_y))

    widths = build_descending_range(max_width, min_width, step)
    heights = build_descending_range(max_height, min_height, step)

    catalogue: List[CatalogueEntry] = []
    seen = set()
    for w, h in size_pairs(widths, heights, orientation):
        w_cells = max(1, round(w * cells_per_unit_x))
        h_cells = max(1, round(h * cells_per_unit_y))
        if w_cells < min_cells_x or h_cells < min_cells_y:
            continue
        if (w_cells, h_cells) in seen:
            continue
        seen.add((w_cells, h_cells))
        catalogue.append(CatalogueEntry(w_cells, h_cells, w, h))

    catalogue.sort(key=lambda e: e.cell_area, reverse=True)
    return catalogue


def best_candidate(candidates: Iterable[Tuple[float, float, T]]) -> Optional[T]:
    """
    Pick the payload with the largest area, then the smallest position score.

    Args:
        candidates: (area, position_score, payload) tuples
    """
    best = None
    best_key = None
    for area, score, payload in candidates:
        key = (-area, score)
        if best_key is None or key < best_key:
            best_key = key
            best = payload
    return best
