"""
sheetpack - 2D rectangular packing engine
=========================================
Exact nesting of part outlines on a material sheet and rectangle auto-fill
of an irregular region described by an availability bitmap.
"""

__version__ = "1.0.0"

from sheetpack.core.exceptions import (
    SheetpackError,
    ConfigurationError,
    NoFittablePartsError,
    CallbackError,
)
from sheetpack.packing import (
    MaterialSurface,
    PartGeometry,
    PackingOptions,
    PartNester,
    MaskPacker,
)

__all__ = [
    'SheetpackError',
    'ConfigurationError',
    'NoFittablePartsError',
    'CallbackError',
    'MaterialSurface',
    'PartGeometry',
    'PackingOptions',
    'PartNester',
    'MaskPacker',
]
