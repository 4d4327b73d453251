"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    ERRORS - Typed failures of one analysis                   ║
║                                                                              ║
║   Every failure is local to a single analysis call. Nothing here is          ║
║   retried or recovered: a failed analysis produces no AcousticResult.        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Any, Dict, Optional


class BoreAcousticsError(Exception):
    """Base class for all didgebore errors."""


class InvalidGeometryError(BoreAcousticsError, ValueError):
    """
    Malformed, insufficient or non-monotonic bore measurements.

    Attributes:
        line: 1-based input line the problem was found on (text input only)
        details: extra context for UI validation messages
    """

    def __init__(self, message: str, line: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.line = line
        self.details = details or {}


class DegenerateGeometryError(BoreAcousticsError):
    """Correction factors produced a non-positive effective length or pitch."""


class InvalidFrequencyError(BoreAcousticsError, ValueError):
    """Pitch mapping requested for a non-positive or non-finite frequency."""


class ConfigError(BoreAcousticsError, ValueError):
    """Invalid configuration or calibration table."""


class CalibrationError(BoreAcousticsError):
    """The calibration tool could not fit factors to the measurements."""


class AmbiguousUnitsWarning(UserWarning):
    """
    Parsed bore length is implausible for a wind instrument.

    The declared unit is kept; the warning only points at a possible
    mm/cm mix-up.
    """
