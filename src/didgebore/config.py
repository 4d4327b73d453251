"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                     ANALYSIS CONFIG - Centralized Parameters                 ║
║                                                                              ║
║   Single source of truth for:                                                ║
║   • Speed of sound (direct or from air temperature)                          ║
║   • Resonator model (open-open half wave / closed-open quarter wave)         ║
║   • Harmonic series bounds and amplitude table                               ║
║   • Pitch reference and plausibility limits                                  ║
║                                                                              ║
║   DESIGN PRINCIPLES:                                                         ║
║   • Immutable defaults with runtime overrides                                ║
║   • Loadable from YAML so recalibration is a file change                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import math

import yaml

from .errors import ConfigError
from .harmonics import AmplitudeProfile
from .physics_constants import AIR, INSTRUMENT_LIMITS, PITCH


class ResonatorType(Enum):
    """
    Boundary conditions of the air column.

    OPEN_OPEN:   half-wave resonator, f = c / (2 L_eff)
    CLOSED_OPEN: quarter-wave resonator, f = c / (4 L_eff), lips as a closed end
    """
    OPEN_OPEN = "open"
    CLOSED_OPEN = "closed"

    @property
    def wavelength_factor(self) -> int:
        """Fundamental wavelength in multiples of effective length."""
        return 2 if self is ResonatorType.OPEN_OPEN else 4


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters of one analysis run.

    temperature_c, when set, takes precedence over speed_of_sound.
    """
    speed_of_sound: float = AIR.speed_of_sound
    temperature_c: Optional[float] = None
    reference_a4: float = PITCH.a4
    harmonic_count: int = 6
    frequency_ceiling_hz: float = 2000.0
    resonator: ResonatorType = ResonatorType.OPEN_OPEN
    plausible_length_m: Tuple[float, float] = INSTRUMENT_LIMITS.length_range
    amplitude: AmplitudeProfile = field(default_factory=AmplitudeProfile)

    def __post_init__(self):
        if isinstance(self.resonator, str):
            object.__setattr__(self, 'resonator', _resonator(self.resonator))
        if not isinstance(self.resonator, ResonatorType):
            raise ConfigError(f"resonator must be 'open' or 'closed', got {self.resonator!r}")
        if isinstance(self.amplitude, Mapping):
            try:
                amplitude = AmplitudeProfile.from_dict(self.amplitude)
            except (AttributeError, TypeError, ValueError) as e:
                raise ConfigError(f"Invalid amplitude profile: {e}") from None
            object.__setattr__(self, 'amplitude', amplitude)
        if not isinstance(self.amplitude, AmplitudeProfile):
            raise ConfigError(f"amplitude must be a mapping, got {self.amplitude!r}")

        for name in ('speed_of_sound', 'reference_a4', 'frequency_ceiling_hz'):
            object.__setattr__(self, name, _number(name, getattr(self, name)))
        if self.temperature_c is not None:
            object.__setattr__(self, 'temperature_c', _number('temperature_c', self.temperature_c))
        try:
            low, high = (_number('plausible_length_m', v) for v in self.plausible_length_m)
        except (TypeError, ValueError):
            raise ConfigError(f"plausible_length_m must be a (low, high) pair, "
                              f"got {self.plausible_length_m!r}") from None
        object.__setattr__(self, 'plausible_length_m', (low, high))

        if not (math.isfinite(self.speed_of_sound) and self.speed_of_sound > 0):
            raise ConfigError(f"speed_of_sound must be positive, got {self.speed_of_sound}")
        if self.temperature_c is not None and not self.temperature_c > -273.15:
            raise ConfigError(f"temperature_c below absolute zero: {self.temperature_c}")
        if not (math.isfinite(self.reference_a4) and self.reference_a4 > 0):
            raise ConfigError(f"reference_a4 must be positive, got {self.reference_a4}")
        count = _number('harmonic_count', self.harmonic_count)
        if not math.isfinite(count) or int(count) != count or count < 1:
            raise ConfigError(f"harmonic_count must be a positive integer, "
                              f"got {self.harmonic_count}")
        object.__setattr__(self, 'harmonic_count', int(count))
        if not self.frequency_ceiling_hz > 0:
            raise ConfigError(f"frequency_ceiling_hz must be positive, "
                              f"got {self.frequency_ceiling_hz}")
        if not 0 < low < high:
            raise ConfigError(f"plausible_length_m must be an increasing positive range, "
                              f"got {self.plausible_length_m}")

    @property
    def effective_speed_of_sound(self) -> float:
        """Speed of sound actually used [m/s]."""
        if self.temperature_c is not None:
            return AIR.speed_of_sound_at(self.temperature_c)
        return self.speed_of_sound

    def with_overrides(self, **overrides: Any) -> 'AnalysisConfig':
        """Copy with the given non-None fields replaced."""
        return replace(self, **_checked({k: v for k, v in overrides.items() if v is not None}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'speed_of_sound': self.speed_of_sound,
            'temperature_c': self.temperature_c,
            'reference_a4': self.reference_a4,
            'harmonic_count': self.harmonic_count,
            'frequency_ceiling_hz': self.frequency_ceiling_hz,
            'resonator': self.resonator.value,
            'plausible_length_m': list(self.plausible_length_m),
            'amplitude': self.amplitude.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AnalysisConfig':
        return cls(**_checked(dict(data)))


def _resonator(value: str) -> ResonatorType:
    try:
        return ResonatorType(value.strip().lower())
    except ValueError:
        valid = ", ".join(r.value for r in ResonatorType)
        raise ConfigError(f"Unknown resonator '{value}'. Valid: {valid}") from None


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _checked(data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(AnalysisConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(map(str, unknown)))}")
    return data


DEFAULT_CONFIG = AnalysisConfig()


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """
    Load an AnalysisConfig from YAML.

    The file may hold the fields at top level or under an 'analysis' key.
    """
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file {path} is not valid YAML: {e}") from None
    if isinstance(data, Mapping) and 'analysis' in data:
        data = data['analysis'] or {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} is not a mapping")
    return AnalysisConfig.from_dict(data)
