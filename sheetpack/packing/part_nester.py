"""
Part Nester - greedy bottom-left nesting of part outlines
=========================================================
Places parts on a single material sheet, largest base area first.

For every part:
1. Pick an orientation per rotation policy (none / 90 / free angle search)
2. Try the structural candidates (right of / below committed footprints)
   and keep the valid one with the lowest bottom-left score
3. Otherwise, unless quality is "fast", scan a uniform grid
4. Commit the footprint or record the part as unplaced

Footprints include the spacing on every side (w + 2*spacing); utilization
counts only the base area of the parts.
"""

import logging
import threading
import time
from typing import List, Optional, Tuple

from sheetpack.config import settings
from sheetpack.core.events import (
    EventType, PackingEvent, PackingEventChannel, YIELD_POINT,
    build_channel, drive, drive_async,
)
from sheetpack.core.exceptions import NoFittablePartsError
from .candidates import grid_candidates, nesting_candidates
from .composer import ResultComposer
from .geometry import SurfaceOccupancy
from .models import (
    EPS, MaterialSurface, NestingResult, Part, PartGeometry, PackingOptions,
    PackingProgress, PackingState, PlacedPart, Quality, Rect, RotationPolicy,
    UnplacedPart,
)
from .outline import min_area_angle, rotated_bounds
from .scoring import best_candidate, position_score
from .validator import PartPlacementValidator

logger = logging.getLogger(__name__)

SOURCE = "PartNester"


class PartNester:
    """
    Greedy nester for one material sheet.

    Usage:
        nester = PartNester(MaterialSurface(1000, 1000), PackingOptions(spacing=2))
        nester.add_part(PartGeometry("A", 400, 300), quantity=2)
        result = nester.run()
    """

    def __init__(self, surface: MaterialSurface, options: Optional[PackingOptions] = None,
                 material_svg: Optional[str] = None):
        self.surface = surface
        self.options = options or PackingOptions()
        self.material_svg = material_svg

        self.geometries: List[PartGeometry] = []
        self.result: Optional[NestingResult] = None
        self.state = PackingState.IDLE

        self.stop_flag = threading.Event()
        self._errors_before = 0

    @classmethod
    def from_material_svg(cls, material_svg: str,
                          options: Optional[PackingOptions] = None) -> 'PartNester':
        """Nester sized from the material SVG (viewBox, then width/height)."""
        return cls(MaterialSurface.from_svg(material_svg), options, material_svg=material_svg)

    @property
    def spacing(self) -> float:
        return self.options.spacing

    # ============================================================
    # Parts
    # ============================================================

    def add_part(self, geometry: PartGeometry, quantity: int = 1) -> None:
        """Add a part (quantity copies keep the same geometry)."""
        for _ in range(quantity):
            self.geometries.append(geometry)

    def add_part_from_dict(self, part_dict: dict, quantity: int = 1) -> None:
        """Add a part from a dict with name, width, height[, contour, contour_area, svg]."""
        self.add_part(PartGeometry.from_dict(part_dict), quantity)

    def add_part_from_svg(self, part_id: str, svg: str, quantity: int = 1) -> bool:
        """Add a part sized from its SVG fragment; False when the fragment has no bounds."""
        geometry = PartGeometry.from_svg(part_id, svg)
        if geometry is None:
            logger.warning(f"{part_id}: SVG without usable bounds, skipped")
            return False
        self.add_part(geometry, quantity)
        return True

    def clear(self) -> None:
        self.geometries.clear()
        self.result = None
        self.state = PackingState.IDLE

    # ============================================================
    # Orientation
    # ============================================================

    def _fits(self, width: float, height: float) -> bool:
        s2 = 2 * self.spacing
        return width + s2 <= self.surface.width + EPS and height + s2 <= self.surface.height + EPS

    def _orientation(self, geometry: PartGeometry) -> Optional[Tuple[float, float, float, float, float]]:
        """(angle, width, height, offset_x, offset_y) of the chosen orientation, None if nothing fits."""
        policy = self.options.rotation
        preferred: List[float] = [0.0]

        if policy is RotationPolicy.RIGHT_ANGLE:
            if geometry.height > geometry.width:
                preferred = [90.0, 0.0]
            else:
                preferred = [0.0, 90.0]
        elif policy is RotationPolicy.FREE:
            step = settings.FREE_ROTATION_STEPS[self.options.quality.value]
            best = min_area_angle(geometry, step)
            preferred = [best] + [a for a in (0.0, 90.0) if a != best]

        for angle in preferred:
            ox, oy, w, h = rotated_bounds(geometry, angle)
            if self._fits(w, h):
                return angle, w, h, ox, oy
        return None

    def _prepare(self) -> Tuple[List[Part], List[UnplacedPart]]:
        parts: List[Part] = []
        unplaceable: List[UnplacedPart] = []
        s2 = 2 * self.spacing

        for index, geometry in enumerate(self.geometries):
            chosen = self._orientation(geometry)
            if chosen is None:
                unplaceable.append(UnplacedPart(
                    part_id=geometry.part_id,
                    width=geometry.width,
                    height=geometry.height,
                    base_area=geometry.base_area,
                    reason=(f"Too large ({geometry.width + s2:g}x{geometry.height + s2:g} > "
                            f"sheet {self.surface.width:g}x{self.surface.height:g})"),
                    index=index,
                ))
                continue
            angle, w, h, ox, oy = chosen
            parts.append(Part(
                part_id=geometry.part_id,
                width=w + s2,
                height=h + s2,
                base_area=geometry.base_area,
                rotation=angle,
                content_offset=(ox, oy),
                index=index,
                geometry=geometry,
            ))
        return parts, unplaceable

    # ============================================================
    # Run
    # ============================================================

    def stop(self) -> None:
        """Request cancellation; honored at the next checkpoint."""
        self.stop_flag.set()

    def _cancelled(self) -> bool:
        return self.stop_flag.is_set() or self.options.is_cancelled()

    def run(self, channel: Optional[PackingEventChannel] = None) -> NestingResult:
        """
        Nest all added parts.

        Raises:
            NoFittablePartsError: parts were added but none fits the sheet
        """
        channel, parts, unplaced = self._start(channel)
        drive(self._iter_run(parts, unplaced), channel)
        return self._finish(channel)

    async def run_async(self, channel: Optional[PackingEventChannel] = None) -> NestingResult:
        """As run(), awaiting async consumers and yielding to the event loop periodically."""
        channel, parts, unplaced = self._start(channel)
        await drive_async(self._iter_run(parts, unplaced), channel)
        return self._finish(channel)

    def _start(self, channel):
        self.stop_flag.clear()
        parts, unplaced = self._prepare()
        if self.geometries and not parts:
            raise NoFittablePartsError(len(self.geometries), self.surface.width, self.surface.height)

        channel = build_channel(SOURCE, self.options.on_progress, self.options.on_placement, channel)
        self._errors_before = len(channel.errors)
        self.result = NestingResult(surface=self.surface, spacing=self.spacing,
                                    unplaced_parts=list(unplaced))
        self.state = PackingState.SCANNING
        return channel, parts, unplaced

    def _finish(self, channel: PackingEventChannel) -> NestingResult:
        result = self.result
        result.state = self.state
        result.callback_errors = channel.errors[self._errors_before:]
        logger.info(
            f"→ Nesting {self.state.value}: {result.placed_count} placed, "
            f"{result.unplaced_count} unplaced, utilization {result.utilization:.1%}"
        )
        return result

    def _progress(self, processed: int, total: int) -> PackingEvent:
        result = self.result
        return PackingEvent(EventType.PROGRESS, PackingProgress(
            fraction=min(1.0, processed / total) if total else 1.0,
            processed_steps=processed,
            total_steps=total,
            placed_count=result.placed_count,
            last_placement=result.placed_parts[-1] if result.placed_parts else None,
        ), source=SOURCE)

    def _iter_run(self, parts: List[Part], unplaced: List[UnplacedPart]):
        """Placement loop; yields events and YIELD_POINT markers."""
        start_time = time.time()
        result = self.result
        options = self.options
        occupancy = SurfaceOccupancy(self.surface)
        validator = PartPlacementValidator(occupancy)
        composer = ResultComposer(self.surface, self.spacing, self.material_svg)

        ordered = sorted(parts, key=lambda p: p.base_area, reverse=True)
        total = len(ordered)
        logger.debug(f"→ Nesting {total} parts ({len(unplaced)} too large) "
                     f"on {self.surface.width:g}x{self.surface.height:g}")

        yield self._progress(0, total)

        processed = 0
        for part in ordered:
            if self._cancelled():
                self.state = PackingState.CANCELLED
                break

            position = self._find_position(part, occupancy, validator)
            if position is None and self._cancelled():
                self.state = PackingState.CANCELLED
                break

            if position is None:
                result.unplaced_parts.append(UnplacedPart(
                    part_id=part.part_id,
                    width=part.geometry.width,
                    height=part.geometry.height,
                    base_area=part.base_area,
                    reason="No space on sheet",
                    index=part.index,
                ))
            else:
                self.state = PackingState.PLACEMENT_FOUND
                x, y = position
                self.state = PackingState.COMMITTING
                occupancy.commit(Rect(x, y, part.width, part.height))
                placed = PlacedPart(
                    part_id=part.part_id,
                    x=x,
                    y=y,
                    width=part.width,
                    height=part.height,
                    rotation=part.rotation,
                    base_area=part.base_area,
                    index=part.index,
                    content_offset=part.content_offset,
                    geometry=part.geometry,
                )
                result.placed_parts.append(placed)
                result.used_area += part.base_area
                self.state = PackingState.SCANNING
                yield PackingEvent(EventType.PLACEMENT, placed, source=SOURCE)

            processed += 1
            if processed % options.progress_interval == 0 and processed < total:
                yield self._progress(processed, total)
            if options.yield_interval and processed % options.yield_interval == 0:
                yield YIELD_POINT
        else:
            self.state = PackingState.FINISHED

        result.utilization = composer.utilization(result.placed_parts)
        result.document = composer.compose_nesting(result.placed_parts)
        result.state = self.state

        elapsed = time.time() - start_time
        logger.debug(f"→ Completed in {elapsed:.2f}s | {result.placed_count}/{total} placed")
        yield self._progress(processed, total)

    def _find_position(self, part: Part, occupancy: SurfaceOccupancy,
                       validator: PartPlacementValidator) -> Optional[Tuple[float, float]]:
        def scored():
            for x, y in nesting_candidates(occupancy.regions, self.spacing):
                if self._cancelled():
                    return
                if validator.is_valid(Rect(x, y, part.width, part.height)):
                    yield 0.0, position_score(x, y, self.surface.width), (x, y)

        position = best_candidate(scored())
        if position is not None or self._cancelled():
            return position

        quality = self.options.quality
        if quality is Quality.FAST:
            return None

        base_step = self.spacing if self.spacing > 0 else self.options.step
        step = base_step * settings.GRID_STEP_FACTORS[quality.value]
        for x, y in grid_candidates(self.surface, part.width, part.height, step, self.spacing):
            if self._cancelled():
                return None
            if validator.is_valid(Rect(x, y, part.width, part.height)):
                logger.debug(f"{part.part_id}: grid fallback at ({x:g}, {y:g})")
                return x, y
        return None
