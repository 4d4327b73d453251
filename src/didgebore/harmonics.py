"""
Harmonic series generator.

Expands a fundamental into a bounded, restartable series of HarmonicEntry.
The series stops at harmonic_count or at the frequency ceiling, whichever
binds first.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping
import logging
import math

from .pitch import frequency_to_note
from .physics_constants import PITCH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HarmonicEntry:
    """One resonance of the bore."""
    index: int
    frequency: float
    amplitude: float
    note: str
    octave: int
    cents_deviation: int
    quality: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'frequency': self.frequency,
            'amplitude': self.amplitude,
            'note': self.note,
            'octave': self.octave,
            'cents_deviation': self.cents_deviation,
            'quality': self.quality,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'HarmonicEntry':
        return cls(
            index=int(data['index']),
            frequency=float(data['frequency']),
            amplitude=float(data['amplitude']),
            note=str(data['note']),
            octave=int(data['octave']),
            cents_deviation=int(data['cents_deviation']),
            quality=float(data.get('quality', 1.0)),
        )


@dataclass(frozen=True)
class AmplitudeProfile:
    """
    Heuristic relative amplitudes.

    amplitude(n) = 1/sqrt(n) * boosts.get(n, 1) * (attenuation if n >= attenuation_from)
    clamped to [0, 1]. The second harmonic is usually strong on conical
    bores; high orders are hard to excite.
    """
    boosts: Mapping[int, float] = field(default_factory=lambda: {2: 1.2})
    attenuation_from: int = 5
    attenuation: float = 0.7

    def amplitude(self, n: int) -> float:
        value = 1.0 / math.sqrt(n)
        value *= self.boosts.get(n, 1.0)
        if n >= self.attenuation_from:
            value *= self.attenuation
        return min(1.0, max(0.0, value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'boosts': {int(k): float(v) for k, v in self.boosts.items()},
            'attenuation_from': self.attenuation_from,
            'attenuation': self.attenuation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AmplitudeProfile':
        defaults = cls()
        boosts = data.get('boosts', defaults.boosts)
        return cls(
            boosts={int(k): float(v) for k, v in boosts.items()},
            attenuation_from=int(data.get('attenuation_from', defaults.attenuation_from)),
            attenuation=float(data.get('attenuation', defaults.attenuation)),
        )


def harmonic_quality(frequency: float, taper_factor: float = 0.0) -> float:
    """
    Playability score in [0, 1].

    High resonances are harder to sound, so the score falls by 1 per 400 Hz
    above 60 Hz (floored at 0.3). Flaring bores earn a bonus of up to 0.3.
    """
    frequency_factor = max(0.3, 1.0 - (frequency - 60.0) / 400.0)
    taper_bonus = min(0.3, max(0.0, taper_factor))
    return min(1.0, frequency_factor + taper_bonus)


def harmonic_frequency(n: int, fundamental: float, inharmonicity: float = 0.0) -> float:
    """n * f0, stretched by (1 + (n-1) * inharmonicity) above the second harmonic."""
    freq = n * fundamental
    if n > 2:
        freq *= 1.0 + (n - 1) * inharmonicity
    return freq


class HarmonicSeries:
    """
    Finite, lazy harmonic series.

    Each iteration starts over from n = 1; iterating has no side effects.
    """

    def __init__(
        self,
        fundamental: float,
        harmonic_count: int = 6,
        frequency_ceiling_hz: float = 2000.0,
        inharmonicity: float = 0.0,
        amplitude_profile: AmplitudeProfile = None,
        a4: float = PITCH.a4,
        taper_factor: float = 0.0,
    ):
        if harmonic_count < 0:
            raise ValueError(f"harmonic_count must be >= 0, got {harmonic_count}")
        self.fundamental = fundamental
        self.harmonic_count = harmonic_count
        self.frequency_ceiling_hz = frequency_ceiling_hz
        self.inharmonicity = inharmonicity
        self.amplitude_profile = amplitude_profile or AmplitudeProfile()
        self.a4 = a4
        self.taper_factor = taper_factor

    def __iter__(self) -> Iterator[HarmonicEntry]:
        for n in range(1, self.harmonic_count + 1):
            freq = harmonic_frequency(n, self.fundamental, self.inharmonicity)
            if self.frequency_ceiling_hz is not None and freq > self.frequency_ceiling_hz:
                if n == 1:
                    logger.warning(
                        f"Fundamental {freq:.1f} Hz is above the "
                        f"{self.frequency_ceiling_hz:.0f} Hz ceiling; no harmonics"
                    )
                break
            info = frequency_to_note(freq, self.a4)
            yield HarmonicEntry(
                index=n,
                frequency=freq,
                amplitude=self.amplitude_profile.amplitude(n),
                note=info.note,
                octave=info.octave,
                cents_deviation=info.cents,
                quality=harmonic_quality(freq, self.taper_factor),
            )

    def __len__(self) -> int:
        return sum(1 for _ in self)
