#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
sheetpack configuration
Default packing parameters, overridable from the environment or a .env file.

Units are whatever unit the caller uses for the material (usually mm).
"""

import os
from dotenv import load_dotenv

from sheetpack.core.exceptions import ConfigurationError

# Load environment variables from .env (if present)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# ============================================================
# NESTING - EXACT PART NESTING
# ============================================================

# "fast" | "balanced" | "best"
DEFAULT_QUALITY = os.getenv("SHEETPACK_QUALITY", "balanced")

# "none" | "90" | "all"
DEFAULT_ROTATION = os.getenv("SHEETPACK_ROTATION", "none")

# Clearance added on every side of a part
DEFAULT_SPACING = _env_float("SHEETPACK_SPACING", 0.0)

# Angle step [deg] of the free rotation search, per quality
FREE_ROTATION_STEPS = {
    "fast": 15.0,
    "balanced": 5.0,
    "best": 1.0,
}

# Grid fallback step as a multiple of the base step, per quality
GRID_STEP_FACTORS = {
    "fast": 2.0,
    "balanced": 1.0,
    "best": 0.5,
}

# ============================================================
# MASK - AUTO-FILL OF AN IRREGULAR REGION
# ============================================================

DEFAULT_MIN_ITEM_WIDTH = _env_float("SHEETPACK_MIN_ITEM_WIDTH", 20.0)
DEFAULT_MIN_ITEM_HEIGHT = _env_float("SHEETPACK_MIN_ITEM_HEIGHT", 20.0)

# Scan/catalogue step
DEFAULT_STEP = _env_float("SHEETPACK_STEP", 10.0)

# Gap between neighbouring items
DEFAULT_GAP = _env_float("SHEETPACK_GAP", 5.0)

# Clearance kept from inherent obstacles (mask boundary lines)
DEFAULT_OBSTACLE_GAP = _env_float("SHEETPACK_OBSTACLE_GAP", 1.0)

# Minimum share of usable cells inside a suggestion (0..1)
DEFAULT_COVERAGE_THRESHOLD = _env_float("SHEETPACK_COVERAGE_THRESHOLD", 0.95)

# "landscape" | "portrait" | "both"
DEFAULT_ORIENTATION = os.getenv("SHEETPACK_ORIENTATION", "both")

DEFAULT_MAX_ITEMS = _env_int("SHEETPACK_MAX_ITEMS", 200)

# Grey level above which a mask cell counts as usable (8-bit masks)
MASK_USABLE_THRESHOLD = _env_int("SHEETPACK_MASK_THRESHOLD", 200)

# Number of recent right/bottom edges kept for zero-gap alignment
EDGE_CACHE_SIZE = _env_int("SHEETPACK_EDGE_CACHE_SIZE", 50)

# ============================================================
# PROGRESS / SCHEDULING
# ============================================================

# Progress snapshot every N processed rows (parts in nesting mode)
DEFAULT_PROGRESS_INTERVAL = _env_int("SHEETPACK_PROGRESS_INTERVAL", 5)

# run_async() hands control back to the event loop every N steps (0 = never)
DEFAULT_YIELD_INTERVAL = _env_int("SHEETPACK_YIELD_INTERVAL", 20)


def validate_config():
    """
    Check the loaded defaults.
    Raises ConfigurationError on the first invalid value.
    """
    if DEFAULT_QUALITY not in FREE_ROTATION_STEPS:
        raise ConfigurationError("SHEETPACK_QUALITY", DEFAULT_QUALITY,
                                 "expected fast, balanced or best")

    if DEFAULT_ROTATION not in ("none", "90", "all"):
        raise ConfigurationError("SHEETPACK_ROTATION", DEFAULT_ROTATION,
                                 "expected none, 90 or all")

    if DEFAULT_ORIENTATION not in ("landscape", "portrait", "both"):
        raise ConfigurationError("SHEETPACK_ORIENTATION", DEFAULT_ORIENTATION,
                                 "expected landscape, portrait or both")

    if DEFAULT_STEP <= 0:
        raise ConfigurationError("SHEETPACK_STEP", DEFAULT_STEP, "must be positive")

    if not 0.0 <= DEFAULT_COVERAGE_THRESHOLD <= 1.0:
        raise ConfigurationError("SHEETPACK_COVERAGE_THRESHOLD",
                                 DEFAULT_COVERAGE_THRESHOLD, "must be within 0..1")

    if not 0 <= MASK_USABLE_THRESHOLD <= 255:
        raise ConfigurationError("SHEETPACK_MASK_THRESHOLD",
                                 MASK_USABLE_THRESHOLD, "must be within 0..255")

    if EDGE_CACHE_SIZE < 1:
        raise ConfigurationError("SHEETPACK_EDGE_CACHE_SIZE", EDGE_CACHE_SIZE,
                                 "must be at least 1")

    return True
