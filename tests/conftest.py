"""
Shared fixtures for the packing engine tests.
"""
import numpy as np
import pytest

from sheetpack.packing import MaterialSurface, PackingOptions, PartGeometry


@pytest.fixture
def sheet():
    """1000 x 1000 material sheet."""
    return MaterialSurface(1000, 1000)


@pytest.fixture
def square_surface():
    """100 x 100 unit surface (1 cell per unit for 100 x 100 masks)."""
    return MaterialSurface(100, 100)


@pytest.fixture
def full_mask():
    """Fully usable 100 x 100 boolean mask."""
    return np.ones((100, 100), dtype=bool)


@pytest.fixture
def tiling_options():
    """Mask options of the tiling scenario: min 20x20, step 10, no gaps, full coverage."""
    return PackingOptions(
        min_width=20, min_height=20, step=10,
        gap=0, obstacle_gap=0, coverage_threshold=1.0,
    )


@pytest.fixture
def plates():
    """Ten identical 300 x 200 plates."""
    return [PartGeometry(f"plate_{i}", 300, 200) for i in range(10)]


def rects_overlap(a, b):
    """Open-interval overlap of two objects with x, y, width, height."""
    return (a.x < b.x + b.width and b.x < a.x + a.width and
            a.y < b.y + b.height and b.y < a.y + a.height)


@pytest.fixture
def overlap():
    return rects_overlap
