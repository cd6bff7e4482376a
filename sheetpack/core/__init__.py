#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
sheetpack Core Module
=====================
Exceptions and the event channel shared by both packing modes.
"""

# Exceptions
from sheetpack.core.exceptions import (
    SheetpackError,
    ValidationError,
    ConfigurationError,
    NoFittablePartsError,
    CallbackError,
)

# Events
from sheetpack.core.events import (
    EventType,
    PackingEvent,
    PackingEventChannel,
    EventHandler,
    payload_handler,
    logging_handler,
    setup_event_logging,
    build_channel,
    drive,
    drive_async,
    YIELD_POINT,
)


__all__ = [
    # Exceptions
    'SheetpackError',
    'ValidationError',
    'ConfigurationError',
    'NoFittablePartsError',
    'CallbackError',

    # Events
    'EventType',
    'PackingEvent',
    'PackingEventChannel',
    'EventHandler',
    'payload_handler',
    'logging_handler',
    'setup_event_logging',
    'build_channel',
    'drive',
    'drive_async',
    'YIELD_POINT',
]
