"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    PHYSICS CONSTANTS - Single Source of Truth                ║
║                                                                              ║
║   Centralized physical constants for bore acoustics.                         ║
║   Import from here instead of hardcoding values across modules.              ║
║                                                                              ║
║   • Air properties (speed of sound and its temperature law)                  ║
║   • Musical pitch reference (A4, C0, note names)                             ║
║   • Plausible instrument dimensions and drone range                          ║
║   • Length units accepted at the parser boundary                             ║
║                                                                              ║
║   References:                                                                ║
║   • Fletcher & Rossing (1991) "The Physics of Musical Instruments"           ║
║   • ISO 16:1975 (Standard tuning frequency A4 = 440 Hz)                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from dataclasses import dataclass
from typing import Dict, Tuple
import math


# ══════════════════════════════════════════════════════════════════════════════
# UNIVERSAL PHYSICS CONSTANTS
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AirProperties:
    """Standard air properties at 20°C, 1 atm."""
    speed_of_sound: float = 343.0   # m/s
    speed_at_zero_c: float = 331.3  # m/s

    def speed_of_sound_at(self, temperature_c: float) -> float:
        """
        Speed of sound in dry air at a given temperature.

        c(T) = c0 * sqrt(1 + T / 273.15)
        """
        absolute = 1.0 + temperature_c / 273.15
        if absolute <= 0:
            raise ValueError(f"Temperature below absolute zero: {temperature_c}°C")
        return self.speed_at_zero_c * math.sqrt(absolute)


AIR = AirProperties()


# ══════════════════════════════════════════════════════════════════════════════
# PITCH REFERENCE
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PitchReference:
    """Equal temperament reference pitch."""
    a4: float = 440.0               # Hz - ISO 16

    def c0(self, a4: float = None) -> float:
        """C in octave 0: 4 octaves and 9 semitones below A4."""
        return (self.a4 if a4 is None else a4) * 2.0 ** (-4.75)


PITCH = PitchReference()

NOTE_NAMES: Tuple[str, ...] = (
    'C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B'
)


# ══════════════════════════════════════════════════════════════════════════════
# INSTRUMENT LIMITS
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class InstrumentLimits:
    """
    Plausible dimensions and pitch of a lip-driven drone instrument.

    A length outside the range most likely means a unit mix-up
    (positions typed in mm but declared as cm, or the reverse). A drone
    outside the pitch range, or overtones drifting more than the tolerance
    from integer multiples, point at unusual geometry or correction factors.
    """
    length_min: float = 0.2         # m
    length_max: float = 5.0         # m
    fundamental_min_hz: float = 30.0
    fundamental_max_hz: float = 200.0
    harmonic_ratio_tolerance: float = 0.5

    @property
    def length_range(self) -> Tuple[float, float]:
        return (self.length_min, self.length_max)

    @property
    def fundamental_range_hz(self) -> Tuple[float, float]:
        return (self.fundamental_min_hz, self.fundamental_max_hz)


INSTRUMENT_LIMITS = InstrumentLimits()


# ══════════════════════════════════════════════════════════════════════════════
# LENGTH UNITS
# ══════════════════════════════════════════════════════════════════════════════

# Metres per unit
LENGTH_UNITS: Dict[str, float] = {
    'mm': 1e-3,
    'cm': 1e-2,
    'm': 1.0,
}

DEFAULT_POSITION_UNIT = 'cm'
DEFAULT_DIAMETER_UNIT = 'mm'
