"""
sheetpack - Exceptions
======================
Exception hierarchy for the packing engine.

Configuration problems fail fast before a run starts. Per-item problems
never raise: they are recorded in the run result (UnplacedPart, CallbackError).
"""


class SheetpackError(Exception):
    """Base exception for all sheetpack errors"""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================
# Validation Errors
# ============================================================

class ValidationError(SheetpackError):
    """Input rejected before packing started"""
    pass


class ConfigurationError(ValidationError):
    """Invalid surface, bitmap or options"""

    def __init__(self, field: str, value, reason: str = None):
        msg = f"Invalid value for '{field}': {value}"
        if reason:
            msg += f" - {reason}"
        super().__init__(
            msg,
            code="CONFIGURATION_ERROR",
            details={"field": field, "value": str(value), "reason": reason}
        )
        self.field = field


class NoFittablePartsError(ValidationError):
    """None of the submitted parts fits the material in any orientation"""

    def __init__(self, part_count: int, surface_width: float, surface_height: float):
        super().__init__(
            f"None of {part_count} parts fits the material "
            f"{surface_width:g}x{surface_height:g}",
            code="NO_FITTABLE_PARTS",
            details={
                "part_count": part_count,
                "surface_width": surface_width,
                "surface_height": surface_height,
            }
        )


# ============================================================
# Consumer Errors
# ============================================================

class CallbackError(SheetpackError):
    """A progress/placement consumer raised; recorded, never propagated"""

    def __init__(self, event_type: str, original: BaseException):
        super().__init__(
            f"Consumer for '{event_type}' failed: {original!r}",
            code="CALLBACK_ERROR",
            details={"event_type": event_type}
        )
        self.event_type = event_type
        self.original = original
