"""
sheetpack Packing Module
========================
2D rectangular packing engine.

Modes:
- PartNester: greedy bottom-left nesting of part outlines on one sheet
- MaskPacker: rectangle auto-fill of an irregular usable region (bitmap)

Shared:
- occupancy model, candidate generation, placement validation, scoring
- ResultComposer: merged SVG document / DXF layout / suggestion list
"""

from .models import (
    Quality,
    RotationPolicy,
    Orientation,
    PackingState,
    Rect,
    MaterialSurface,
    PartGeometry,
    Part,
    PlacedPart,
    UnplacedPart,
    RectangleSuggestion,
    PackingProgress,
    PackingOptions,
    NestingResult,
    MaskPackResult,
)
from .geometry import SurfaceOccupancy, AvailabilityMask
from .validator import PartPlacementValidator, MaskPlacementValidator, Rejection
from .composer import ResultComposer, Transform
from .svg_document import SvgNode, parse_svg, parse_svg_bounds
from .part_nester import PartNester
from .mask_packer import MaskPacker

__all__ = [
    'Quality',
    'RotationPolicy',
    'Orientation',
    'PackingState',
    'Rect',
    'MaterialSurface',
    'PartGeometry',
    'Part',
    'PlacedPart',
    'UnplacedPart',
    'RectangleSuggestion',
    'PackingProgress',
    'PackingOptions',
    'NestingResult',
    'MaskPackResult',
    'SurfaceOccupancy',
    'AvailabilityMask',
    'PartPlacementValidator',
    'MaskPlacementValidator',
    'Rejection',
    'ResultComposer',
    'Transform',
    'SvgNode',
    'parse_svg',
    'parse_svg_bounds',
    'PartNester',
    'MaskPacker',
]
