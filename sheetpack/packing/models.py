"""
Data Models for Nesting and Mask Packing.

Defines the records exchanged between the packing drivers, the composer and
callers. Everything here is scoped to a single run.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from sheetpack.config import settings
from sheetpack.core.exceptions import CallbackError, ConfigurationError
from .svg_document import SvgNode, parse_svg_bounds

# Float tolerance for bounds/overlap tests
EPS = 1e-9


class Quality(Enum):
    """Search exhaustiveness."""
    FAST = "fast"
    BALANCED = "balanced"
    BEST = "best"


class RotationPolicy(Enum):
    """Allowed part rotations in nesting mode."""
    NONE = "none"
    RIGHT_ANGLE = "90"
    FREE = "all"


class Orientation(Enum):
    """Preferred orientation of mask-mode rectangles."""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    BOTH = "both"


class PackingState(Enum):
    """Driver state machine."""
    IDLE = "idle"
    SCANNING = "scanning"
    PLACEMENT_FOUND = "placement_found"
    COMMITTING = "committing"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (PackingState.FINISHED, PackingState.CANCELLED, PackingState.EXHAUSTED)


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(field_name, value, f"expected one of: {allowed}")


# ============================================================
# Geometry records
# ============================================================

@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, y grows downwards."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def intersects(self, other: 'Rect') -> bool:
        """Interiors overlap; shared edges do not count."""
        return (self.x < other.right - EPS and self.right > other.x + EPS and
                self.y < other.bottom - EPS and self.bottom > other.y + EPS)


@dataclass(frozen=True)
class MaterialSurface:
    """Material sheet extent."""
    width: float
    height: float

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if (isinstance(value, bool) or not isinstance(value, (int, float))
                    or not math.isfinite(value) or value <= 0):
                raise ConfigurationError(f"surface.{name}", value, "must be a positive number")

    @property
    def area(self) -> float:
        return self.width * self.height

    @classmethod
    def from_svg(cls, svg_text: str) -> 'MaterialSurface':
        """Extent of a material SVG (viewBox first, then width/height)."""
        bounds = parse_svg_bounds(svg_text)
        if bounds is None:
            raise ConfigurationError(
                "material_svg", (svg_text or "")[:40],
                "no usable viewBox or width/height attributes"
            )
        return cls(width=bounds.width, height=bounds.height)


@dataclass
class PartGeometry:
    """
    Input part: bounding box plus optional vector content.

    The contour is normalized so that its bounding box starts at (0, 0).
    `origin` is the viewBox origin of the SVG fragment.
    """
    part_id: str
    width: float
    height: float
    svg: str = ""
    contour: List[Tuple[float, float]] = field(default_factory=list)
    area: Optional[float] = None
    origin: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if (isinstance(value, bool) or not isinstance(value, (int, float))
                    or not math.isfinite(value) or value <= 0):
                raise ConfigurationError(f"{self.part_id}.{name}", value, "must be a positive number")
        if self.contour:
            min_x = min(p[0] for p in self.contour)
            min_y = min(p[1] for p in self.contour)
            self.contour = [(float(x) - min_x, float(y) - min_y) for x, y in self.contour]

    @property
    def base_area(self) -> float:
        """Area counted towards utilization (spacing excluded)."""
        if self.area is not None:
            return self.area
        return self.width * self.height

    @classmethod
    def from_svg(cls, part_id: str, svg_text: str) -> Optional['PartGeometry']:
        """Part from an SVG fragment; None when the fragment has no usable bounds."""
        if not svg_text or not svg_text.strip():
            return None
        bounds = parse_svg_bounds(svg_text)
        if bounds is None:
            return None
        return cls(
            part_id=part_id,
            width=bounds.width,
            height=bounds.height,
            svg=svg_text,
            origin=(bounds.x, bounds.y),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'PartGeometry':
        width = data.get('width', 0)
        height = data.get('height', 0)
        return cls(
            part_id=str(data.get('name', 'Part')),
            width=width,
            height=height,
            svg=data.get('svg', ""),
            contour=list(data.get('contour', [])),
            area=data.get('contour_area'),
        )


@dataclass(frozen=True)
class Part:
    """
    Part prepared for nesting.

    width/height are the footprint on the sheet including spacing on both
    sides, after rotation. content_offset is the top-left corner of the
    rotated content when rotating about the content's local center.
    """
    part_id: str
    width: float
    height: float
    base_area: float
    rotation: float = 0.0
    content_offset: Tuple[float, float] = (0.0, 0.0)
    index: int = 0
    geometry: Optional[PartGeometry] = field(default=None, compare=False, repr=False)

    @property
    def rotated(self) -> bool:
        return self.rotation != 0


@dataclass(frozen=True)
class PlacedPart:
    """Part committed on the sheet."""
    part_id: str
    x: float
    y: float
    width: float
    height: float
    rotation: float
    base_area: float
    index: int = 0
    content_offset: Tuple[float, float] = (0.0, 0.0)
    geometry: Optional[PartGeometry] = field(default=None, compare=False, repr=False)

    @property
    def footprint(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class UnplacedPart:
    """Part that could not be placed."""
    part_id: str
    width: float
    height: float
    base_area: float = 0.0
    reason: str = "Too large"
    index: int = 0


@dataclass(frozen=True)
class RectangleSuggestion:
    """Rectangle found in mask mode, physical units."""
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class PackingProgress:
    """Progress snapshot, never persisted."""
    fraction: float
    processed_steps: int
    total_steps: int
    placed_count: int
    last_placement: Optional[Any] = None


# ============================================================
# Options
# ============================================================

@dataclass(frozen=True)
class PackingOptions:
    """
    Frozen run configuration shared by both modes.

    Nesting uses quality, rotation and spacing. Mask mode uses the item sizes,
    step, gaps, coverage_threshold, orientation and max_items. max_width /
    max_height default to the surface extent. gap and obstacle_gap are in
    physical units and converted to cells per axis.
    """
    quality: Quality = settings.DEFAULT_QUALITY
    rotation: RotationPolicy = settings.DEFAULT_ROTATION
    spacing: float = settings.DEFAULT_SPACING
    min_width: float = settings.DEFAULT_MIN_ITEM_WIDTH
    min_height: float = settings.DEFAULT_MIN_ITEM_HEIGHT
    max_width: Optional[float] = None
    max_height: Optional[float] = None
    step: float = settings.DEFAULT_STEP
    gap: float = settings.DEFAULT_GAP
    obstacle_gap: float = settings.DEFAULT_OBSTACLE_GAP
    coverage_threshold: float = settings.DEFAULT_COVERAGE_THRESHOLD
    orientation: Orientation = settings.DEFAULT_ORIENTATION
    max_items: int = settings.DEFAULT_MAX_ITEMS
    progress_interval: int = settings.DEFAULT_PROGRESS_INTERVAL
    yield_interval: int = settings.DEFAULT_YIELD_INTERVAL
    scan_height: Optional[float] = None
    should_cancel: Optional[Callable[[], bool]] = field(default=None, compare=False)
    on_progress: Optional[Callable[[PackingProgress], Any]] = field(default=None, compare=False)
    on_placement: Optional[Callable[[Any], Any]] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'quality', _coerce_enum(Quality, self.quality, 'quality'))
        object.__setattr__(self, 'rotation', _coerce_enum(RotationPolicy, self.rotation, 'rotation'))
        object.__setattr__(self, 'orientation',
                           _coerce_enum(Orientation, self.orientation, 'orientation'))

        if self.spacing < 0:
            raise ConfigurationError('spacing', self.spacing, "must not be negative")
        if self.min_width <= 0 or self.min_height <= 0:
            raise ConfigurationError('min_size', (self.min_width, self.min_height),
                                     "must be positive")
        if self.max_width is not None and self.max_width <= 0:
            raise ConfigurationError('max_width', self.max_width, "must be positive")
        if self.max_height is not None and self.max_height <= 0:
            raise ConfigurationError('max_height', self.max_height, "must be positive")
        if self.max_width is not None and self.min_width > self.max_width:
            raise ConfigurationError('min_width', self.min_width,
                                     f"exceeds max_width {self.max_width}")
        if self.max_height is not None and self.min_height > self.max_height:
            raise ConfigurationError('min_height', self.min_height,
                                     f"exceeds max_height {self.max_height}")
        if self.step <= 0:
            raise ConfigurationError('step', self.step, "must be positive")
        if self.gap < 0:
            raise ConfigurationError('gap', self.gap, "must not be negative")
        if self.obstacle_gap < 0:
            raise ConfigurationError('obstacle_gap', self.obstacle_gap, "must not be negative")
        if not 0.0 <= self.coverage_threshold <= 1.0:
            raise ConfigurationError('coverage_threshold', self.coverage_threshold,
                                     "must be within 0..1")
        if self.max_items < 1:
            raise ConfigurationError('max_items', self.max_items, "must be at least 1")
        if self.progress_interval < 1:
            raise ConfigurationError('progress_interval', self.progress_interval,
                                     "must be at least 1")
        if self.yield_interval < 0:
            raise ConfigurationError('yield_interval', self.yield_interval,
                                     "must not be negative")
        if self.scan_height is not None and self.scan_height <= 0:
            raise ConfigurationError('scan_height', self.scan_height, "must be positive")

    def is_cancelled(self) -> bool:
        """Poll the cancellation predicate."""
        return bool(self.should_cancel is not None and self.should_cancel())


# ============================================================
# Results
# ============================================================

@dataclass
class NestingResult:
    """Outcome of a nesting run."""
    surface: MaterialSurface
    placed_parts: List[PlacedPart] = field(default_factory=list)
    unplaced_parts: List[UnplacedPart] = field(default_factory=list)
    used_area: float = 0.0
    utilization: float = 0.0
    state: PackingState = PackingState.IDLE
    spacing: float = 0.0
    document: Optional[SvgNode] = None
    callback_errors: List[CallbackError] = field(default_factory=list)

    @property
    def placed_count(self) -> int:
        return len(self.placed_parts)

    @property
    def unplaced_count(self) -> int:
        return len(self.unplaced_parts)

    def to_svg(self) -> str:
        """Serialized merged document."""
        if self.document is None:
            return ""
        return self.document.serialize()

    def build_dxf(self):
        """Layout as an in-memory ezdxf drawing."""
        from .composer import ResultComposer
        return ResultComposer(self.surface, self.spacing).build_dxf(self.placed_parts)


@dataclass
class MaskPackResult:
    """Outcome of a mask auto-fill run."""
    suggestions: List[RectangleSuggestion] = field(default_factory=list)
    state: PackingState = PackingState.IDLE
    processed_rows: int = 0
    total_rows: int = 0
    callback_errors: List[CallbackError] = field(default_factory=list)

    @property
    def placed_count(self) -> int:
        return len(self.suggestions)
