"""
Mask Packer - auto-fill of an irregular usable region
=====================================================
Scans the availability bitmap row by row (top to bottom, one row per step)
and keeps placing rectangles in the current row until none fits:

    for each row:
        repeat:
            anchors = edge tier > free-run tier > grid tier
            first anchor where a catalogue size (largest first) validates
            commit interior + neighbour halo, remember its edges
        until the row yields nothing

The run ends when every row was scanned, the item cap is reached or
cancellation is requested. Suggestions are returned in physical units.
"""

import logging
import math
import threading
import time
from typing import List, Optional, Tuple

import numpy as np

from sheetpack.config import settings
from sheetpack.core.events import (
    EventType, PackingEvent, PackingEventChannel, YIELD_POINT,
    build_channel, drive, drive_async,
)
from sheetpack.core.exceptions import ConfigurationError
from .candidates import EdgeCache, mask_row_candidates, snap_to_edges
from .composer import ResultComposer
from .geometry import AvailabilityMask
from .models import (
    MaskPackResult, MaterialSurface, PackingOptions, PackingProgress,
    PackingState, RectangleSuggestion,
)
from .scoring import CatalogueEntry, build_size_catalogue
from .validator import MaskPlacementValidator

logger = logging.getLogger(__name__)

SOURCE = "MaskPacker"


class MaskPacker:
    """
    Greedy rectangle auto-fill over an availability mask.

    Args:
        values: mask cells, row-major (flat or 2D); bool or 8-bit grey
        mask_width, mask_height: mask size in cells
        surface: physical extent covered by the mask
        options: run configuration
        pristine: optional obstacle bitmap (defaults to `values`)
        threshold: grey level above which a cell is usable
    """

    def __init__(self, values, mask_width: int, mask_height: int,
                 surface: MaterialSurface, options: Optional[PackingOptions] = None,
                 pristine=None, threshold: int = settings.MASK_USABLE_THRESHOLD):
        if mask_width <= 0 or mask_height <= 0:
            raise ConfigurationError('mask_size', (mask_width, mask_height), "must be positive")
        values = np.array(values, copy=True)
        if values.size != mask_width * mask_height:
            raise ConfigurationError(
                'mask', values.size,
                f"expected {mask_width * mask_height} cells ({mask_width}x{mask_height})"
            )
        if pristine is not None:
            pristine = np.array(pristine, copy=True)
            if pristine.size != mask_width * mask_height:
                raise ConfigurationError('pristine', pristine.size,
                                         f"expected {mask_width * mask_height} cells")

        self._values = values
        self._pristine = pristine
        self.mask_width = mask_width
        self.mask_height = mask_height
        self.surface = surface
        self.options = options or PackingOptions()
        self.threshold = threshold

        self.cells_per_unit_x = mask_width / surface.width
        self.cells_per_unit_y = mask_height / surface.height

        # max sizes default to the surface extent
        max_width, max_height = self.max_size()
        if self.options.min_width > max_width:
            raise ConfigurationError('min_width', self.options.min_width,
                                     f"exceeds max width {max_width:g}")
        if self.options.min_height > max_height:
            raise ConfigurationError('min_height', self.options.min_height,
                                     f"exceeds max height {max_height:g}")

        self.mask: Optional[AvailabilityMask] = None
        self.result: Optional[MaskPackResult] = None
        self.state = PackingState.IDLE
        self.stop_flag = threading.Event()
        self._errors_before = 0

    # ============================================================
    # Derived parameters (cells)
    # ============================================================

    def _cells(self, value: float, per_unit: float, minimum: int = 0) -> int:
        return max(minimum, int(round(value * per_unit)))

    def step_cells(self) -> Tuple[int, int]:
        step = self.options.step
        return (self._cells(step, self.cells_per_unit_x, 1),
                self._cells(step, self.cells_per_unit_y, 1))

    def gap_cells(self) -> Tuple[int, int]:
        gap = self.options.gap
        return self._cells(gap, self.cells_per_unit_x), self._cells(gap, self.cells_per_unit_y)

    def obstacle_gap_cells(self) -> Tuple[int, int]:
        gap = self.options.obstacle_gap
        return self._cells(gap, self.cells_per_unit_x), self._cells(gap, self.cells_per_unit_y)

    def max_size(self) -> Tuple[float, float]:
        options = self.options
        return (options.max_width if options.max_width is not None else self.surface.width,
                options.max_height if options.max_height is not None else self.surface.height)

    def catalogue(self) -> List[CatalogueEntry]:
        options = self.options
        max_width, max_height = self.max_size()
        return build_size_catalogue(
            min_width=options.min_width,
            min_height=options.min_height,
            max_width=max_width,
            max_height=max_height,
            step=options.step,
            orientation=options.orientation,
            cells_per_unit_x=self.cells_per_unit_x,
            cells_per_unit_y=self.cells_per_unit_y,
        )

    def scan_rows(self) -> int:
        """Rows (cells) to scan: the whole mask or the optional scan height."""
        if self.options.scan_height is None:
            return self.mask_height
        rows = int(math.ceil(self.options.scan_height * self.cells_per_unit_y))
        return max(1, min(self.mask_height, rows))

    # ============================================================
    # Run
    # ============================================================

    def stop(self) -> None:
        """Request cancellation; honored at the next checkpoint."""
        self.stop_flag.set()

    def _cancelled(self) -> bool:
        return self.stop_flag.is_set() or self.options.is_cancelled()

    def run(self, channel: Optional[PackingEventChannel] = None) -> MaskPackResult:
        channel = self._start(channel)
        drive(self._iter_run(), channel)
        return self._finish(channel)

    async def run_async(self, channel: Optional[PackingEventChannel] = None) -> MaskPackResult:
        """As run(), awaiting async consumers and yielding every `yield_interval` rows."""
        channel = self._start(channel)
        await drive_async(self._iter_run(), channel)
        return self._finish(channel)

    def _start(self, channel):
        self.stop_flag.clear()
        # Fresh mask from the pristine input on every run
        self.mask = AvailabilityMask.from_values(
            self._values, self.mask_width, self.mask_height,
            threshold=self.threshold, pristine=self._pristine,
        )
        channel = build_channel(SOURCE, self.options.on_progress, self.options.on_placement, channel)
        self._errors_before = len(channel.errors)
        self.result = MaskPackResult()
        self.state = PackingState.SCANNING
        return channel

    def _finish(self, channel: PackingEventChannel) -> MaskPackResult:
        result = self.result
        result.state = self.state
        result.callback_errors = channel.errors[self._errors_before:]
        logger.info(
            f"→ Mask fill {self.state.value}: {result.placed_count} rectangles, "
            f"{result.processed_rows}/{result.total_rows} rows"
        )
        return result

    def _progress(self) -> PackingEvent:
        result = self.result
        return PackingEvent(EventType.PROGRESS, PackingProgress(
            fraction=min(1.0, result.processed_rows / result.total_rows),
            processed_steps=result.processed_rows,
            total_steps=result.total_rows,
            placed_count=result.placed_count,
            last_placement=result.suggestions[-1] if result.suggestions else None,
        ), source=SOURCE)

    def _iter_run(self):
        """Scan loop; yields events and YIELD_POINT markers."""
        start_time = time.time()
        options = self.options
        result = self.result
        mask = self.mask

        catalogue = self.catalogue()
        step_x, step_y = self.step_cells()
        gap_x, gap_y = self.gap_cells()
        edges = EdgeCache() if gap_x == 0 and gap_y == 0 else None
        validator = MaskPlacementValidator(
            mask,
            neighbor_gap=(gap_x, gap_y),
            obstacle_gap=self.obstacle_gap_cells(),
            coverage_threshold=options.coverage_threshold,
        )
        rows = self.scan_rows()
        result.total_rows = max(1, int(math.ceil(rows / step_y)))

        logger.debug(
            f"→ Mask fill {mask.width}x{mask.height} cells, {len(catalogue)} sizes, "
            f"step {step_x}x{step_y}, gap {gap_x}x{gap_y}, edge cache {'on' if edges else 'off'}"
        )

        yield self._progress()

        cancelled = False
        for y in range(0, rows, step_y):
            if self._cancelled():
                cancelled = True
                break
            if result.placed_count >= options.max_items:
                break
            result.processed_rows += 1

            while result.placed_count < options.max_items:
                found, cancelled = self._search_row(mask, validator, catalogue, y,
                                                    step_x, step_y, edges)
                if cancelled or found is None:
                    break

                self.state = PackingState.PLACEMENT_FOUND
                x0, y0, entry = found
                self.state = PackingState.COMMITTING
                mask.commit(x0, y0, entry.width_cells, entry.height_cells, gap_x, gap_y)
                if edges is not None:
                    edges.add(x0 + entry.width_cells, y0 + entry.height_cells)
                suggestion = RectangleSuggestion(
                    x=x0 / self.cells_per_unit_x,
                    y=y0 / self.cells_per_unit_y,
                    width=entry.width_cells / self.cells_per_unit_x,
                    height=entry.height_cells / self.cells_per_unit_y,
                )
                result.suggestions.append(suggestion)
                self.state = PackingState.SCANNING
                yield PackingEvent(EventType.PLACEMENT, suggestion, source=SOURCE)

                if self._cancelled():
                    cancelled = True
                    break

            if cancelled:
                break
            if result.processed_rows % options.progress_interval == 0:
                yield self._progress()
            if options.yield_interval and result.processed_rows % options.yield_interval == 0:
                yield YIELD_POINT

        if cancelled:
            self.state = PackingState.CANCELLED
        elif result.placed_count >= options.max_items:
            self.state = PackingState.EXHAUSTED
        else:
            self.state = PackingState.FINISHED

        result.suggestions = ResultComposer.compose_mask(result.suggestions)
        result.processed_rows = min(result.processed_rows, result.total_rows)
        result.state = self.state

        elapsed = time.time() - start_time
        logger.debug(f"→ Completed in {elapsed:.2f}s | {result.placed_count} rectangles")
        yield self._progress()

    def _search_row(self, mask: AvailabilityMask, validator: MaskPlacementValidator,
                    catalogue: List[CatalogueEntry], y: int, step_x: int, step_y: int,
                    edges: Optional[EdgeCache]):
        """
        First admissible (x, y, size) in row y, in anchor order and
        largest-size-first order.

        Returns:
            (placement or None, cancelled)
        """
        for x, _tier in mask_row_candidates(mask, y, step_x, edges):
            if self._cancelled():
                return None, True
            if not mask.available_at(x, y):
                continue
            for entry in catalogue:
                if self._cancelled():
                    return None, True
                w, h = entry.width_cells, entry.height_cells
                if x + w > mask.width or y + h > mask.height:
                    continue
                fx, fy = x, y
                if edges is not None and len(edges):
                    fx, fy = snap_to_edges(mask, edges, x, y, w, h, step_x, step_y,
                                           self._cancelled)
                if self._cancelled():
                    return None, True
                if validator.is_valid(fx, fy, w, h):
                    return (fx, fy, entry), False
        return None, False
