"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                ACOUSTIC MODEL - Bore profile → drone pitch                   ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  Open-tube resonance with end, taper and empirical corrections:              ║
║                                                                              ║
║    L_eff  = L + end · r_bell + mouth · r_mouth                               ║
║    f_base = c / (2 · L_eff)          (open-open, half wavelength)            ║
║    f_0    = f_base · (1 + Δ · taper) · scale                                 ║
║                                                                              ║
║    Δ = (d_bell - d_mouth) / d_mouth                                          ║
║                                                                              ║
║  References:                                                                 ║
║  - Fletcher & Rossing (1991): open pipe end corrections ≈ 0.6 r              ║
║  - Levine & Schwinger (1948): unflanged radiation end correction            ║
║  - Mapes-Riordan (1991): transmission-line horn elements (not modelled)     ║
║                                                                              ║
║  The taper and scale terms are empirical and come from the CorrectionPolicy.║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from .calibration import (
    BoreClass,
    CorrectionFactors,
    CorrectionPolicy,
    PolicyLike,
    resolve_policy,
)
from .config import AnalysisConfig, DEFAULT_CONFIG
from .errors import DegenerateGeometryError
from .geometry import BoreProfile, parse_geometry, unit_advisories
from .harmonics import HarmonicEntry, HarmonicSeries
from .physics_constants import (
    DEFAULT_DIAMETER_UNIT,
    DEFAULT_POSITION_UNIT,
    INSTRUMENT_LIMITS,
    InstrumentLimits,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# RESULT
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FundamentalEstimate:
    """Intermediate descriptors of the fundamental calculation."""
    physical_length: float      # m
    bell_correction: float      # m
    mouth_correction: float     # m
    effective_length: float     # m
    base_frequency: float       # Hz, before taper and scale
    taper_correction: float     # multiplier
    fundamental_frequency: float  # Hz


@dataclass(frozen=True)
class AcousticResult:
    """
    One resolved analysis. Created per call, never mutated.

    Lengths in metres, frequencies in Hz.
    """
    physical_length: float
    effective_length: float
    average_diameter: float
    fundamental_frequency: float
    harmonics: Tuple[HarmonicEntry, ...]
    bell_correction: float = 0.0
    mouth_correction: float = 0.0
    base_frequency: float = 0.0
    taper_ratio: float = 1.0
    taper_correction: float = 1.0
    bore_class: BoreClass = BoreClass.NEAR_CYLINDRICAL
    correction_factors: CorrectionFactors = CorrectionFactors()
    calibration_version: str = "unversioned"
    speed_of_sound: float = 343.0
    volume: float = 0.0
    warnings: Tuple[str, ...] = ()

    @property
    def fundamental(self) -> Optional[HarmonicEntry]:
        return self.harmonics[0] if self.harmonics else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary; from_dict(to_dict()) reproduces the result."""
        return {
            'physical_length': self.physical_length,
            'effective_length': self.effective_length,
            'average_diameter': self.average_diameter,
            'fundamental_frequency': self.fundamental_frequency,
            'harmonics': [h.to_dict() for h in self.harmonics],
            'bell_correction': self.bell_correction,
            'mouth_correction': self.mouth_correction,
            'base_frequency': self.base_frequency,
            'taper_ratio': self.taper_ratio,
            'taper_correction': self.taper_correction,
            'bore_class': self.bore_class.value,
            'correction_factors': self.correction_factors.to_dict(),
            'calibration_version': self.calibration_version,
            'speed_of_sound': self.speed_of_sound,
            'volume': self.volume,
            'warnings': list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AcousticResult':
        return cls(
            physical_length=float(data['physical_length']),
            effective_length=float(data['effective_length']),
            average_diameter=float(data['average_diameter']),
            fundamental_frequency=float(data['fundamental_frequency']),
            harmonics=tuple(HarmonicEntry.from_dict(h) for h in data['harmonics']),
            bell_correction=float(data.get('bell_correction', 0.0)),
            mouth_correction=float(data.get('mouth_correction', 0.0)),
            base_frequency=float(data.get('base_frequency', 0.0)),
            taper_ratio=float(data.get('taper_ratio', 1.0)),
            taper_correction=float(data.get('taper_correction', 1.0)),
            bore_class=BoreClass(data.get('bore_class', BoreClass.NEAR_CYLINDRICAL.value)),
            correction_factors=CorrectionFactors.from_dict(data.get('correction_factors', {})),
            calibration_version=str(data.get('calibration_version', 'unversioned')),
            speed_of_sound=float(data.get('speed_of_sound', 343.0)),
            volume=float(data.get('volume', 0.0)),
            warnings=tuple(data.get('warnings', ())),
        )


# ══════════════════════════════════════════════════════════════════════════════
# MODEL
# ══════════════════════════════════════════════════════════════════════════════

def estimate_fundamental(
    profile: BoreProfile,
    factors: CorrectionFactors,
    speed_of_sound: float = DEFAULT_CONFIG.speed_of_sound,
    wavelength_factor: int = 2,
) -> FundamentalEstimate:
    """
    Corrected fundamental of a bore for one set of factors.

    Raises:
        DegenerateGeometryError: non-positive effective length, or
            correction factors that drive the pitch to zero or below
    """
    physical_length = profile.physical_length
    bell_correction = factors.end_correction * profile.bell_radius
    mouth_correction = factors.mouth_correction * profile.mouth_radius
    effective_length = physical_length + bell_correction + mouth_correction

    if not (math.isfinite(effective_length) and effective_length > 0):
        raise DegenerateGeometryError(
            f"Effective length {effective_length:.6f} m is not positive "
            f"(L={physical_length:.4f}, bell={bell_correction:.4f}, "
            f"mouth={mouth_correction:.4f}); check correction factors"
        )

    base_frequency = speed_of_sound / (wavelength_factor * effective_length)
    taper_correction = 1.0 + profile.taper_delta * factors.taper_coefficient
    fundamental = base_frequency * taper_correction * factors.scale_factor

    if not (math.isfinite(fundamental) and fundamental > 0):
        raise DegenerateGeometryError(
            f"Corrected fundamental {fundamental} Hz is not positive "
            f"(taper correction {taper_correction:.4f}, scale {factors.scale_factor})"
        )

    return FundamentalEstimate(
        physical_length=physical_length,
        bell_correction=bell_correction,
        mouth_correction=mouth_correction,
        effective_length=effective_length,
        base_frequency=base_frequency,
        taper_correction=taper_correction,
        fundamental_frequency=fundamental,
    )


def result_advisories(
    fundamental_frequency: float,
    harmonics: Sequence[HarmonicEntry],
    limits: InstrumentLimits = INSTRUMENT_LIMITS,
) -> List[str]:
    """Messages for a drone outside the usual range or overtones off the integer series."""
    messages = []
    low, high = limits.fundamental_range_hz
    if not low <= fundamental_frequency <= high:
        messages.append(
            f"Fundamental {fundamental_frequency:.2f} Hz is outside the usual "
            f"{low:g}-{high:g} Hz drone range"
        )
    for h in harmonics[1:]:
        ratio = h.frequency / fundamental_frequency
        if abs(ratio - h.index) > limits.harmonic_ratio_tolerance:
            messages.append(
                f"Harmonic {h.index} sits at {ratio:.2f} x the fundamental, "
                f"more than {limits.harmonic_ratio_tolerance:g} from {h.index}"
            )
    for message in messages:
        logger.warning(message)
    return messages


class AcousticModel:
    """
    Physics engine: BoreProfile → AcousticResult.

    Stateless apart from its configuration and policy; one instance may
    analyze many bores, concurrently if desired.
    """

    def __init__(self, config: AnalysisConfig = None, policy: PolicyLike = None):
        self.config = config or DEFAULT_CONFIG
        self.policy: CorrectionPolicy = resolve_policy(policy)

    def analyze(self, profile: BoreProfile,
                position_unit: str = DEFAULT_POSITION_UNIT) -> AcousticResult:
        """
        Predict fundamental and harmonic series of a bore.

        Args:
            profile: validated bore
            position_unit: unit the positions were declared in, quoted in
                the unit advisory

        Returns:
            AcousticResult
        """
        config = self.config
        speed = config.effective_speed_of_sound
        bore_class = self.policy.classify(profile)
        factors = self.policy.factors_for_class(bore_class)

        estimate = estimate_fundamental(
            profile, factors, speed, config.resonator.wavelength_factor
        )

        logger.debug(
            f"{bore_class.value} (taper {profile.taper_ratio:.2f}): "
            f"L={estimate.physical_length:.4f} m, "
            f"L_eff={estimate.effective_length:.4f} m, "
            f"f_base={estimate.base_frequency:.2f} Hz, "
            f"taper×{estimate.taper_correction:.3f}, scale×{factors.scale_factor:.3f} "
            f"→ f0={estimate.fundamental_frequency:.2f} Hz"
        )

        series = HarmonicSeries(
            estimate.fundamental_frequency,
            harmonic_count=config.harmonic_count,
            frequency_ceiling_hz=config.frequency_ceiling_hz,
            inharmonicity=factors.inharmonicity,
            amplitude_profile=config.amplitude,
            a4=config.reference_a4,
            taper_factor=profile.taper_factor,
        )
        harmonics = tuple(series)

        advisories: List[str] = unit_advisories(
            profile, position_unit, config.plausible_length_m
        )
        advisories += result_advisories(estimate.fundamental_frequency, harmonics)

        return AcousticResult(
            physical_length=estimate.physical_length,
            effective_length=estimate.effective_length,
            average_diameter=profile.average_diameter,
            fundamental_frequency=estimate.fundamental_frequency,
            harmonics=harmonics,
            bell_correction=estimate.bell_correction,
            mouth_correction=estimate.mouth_correction,
            base_frequency=estimate.base_frequency,
            taper_ratio=profile.taper_ratio,
            taper_correction=estimate.taper_correction,
            bore_class=bore_class,
            correction_factors=factors,
            calibration_version=getattr(self.policy, 'version', 'unversioned'),
            speed_of_sound=speed,
            volume=profile.volume,
            warnings=tuple(advisories),
        )

    def batch_analyze(self, profiles: List[BoreProfile]) -> List[AcousticResult]:
        """Analyze several bores in order."""
        return [self.analyze(p) for p in profiles]


# ══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ══════════════════════════════════════════════════════════════════════════════

def analyze_bore(
    raw,
    position_unit: str = DEFAULT_POSITION_UNIT,
    diameter_unit: str = DEFAULT_DIAMETER_UNIT,
    config: AnalysisConfig = None,
    speed_of_sound: float = None,
    harmonic_count: int = None,
    frequency_ceiling_hz: float = None,
    correction_policy: PolicyLike = None,
) -> AcousticResult:
    """
    Parse raw geometry and analyze it in one call.

    Args:
        raw: geometry text, pairs, mappings or (N, 2) array
        position_unit: declared unit of positions ('mm', 'cm', 'm')
        diameter_unit: declared unit of diameters
        config: base configuration (defaults if None)
        speed_of_sound, harmonic_count, frequency_ceiling_hz: overrides
        correction_policy: CorrectionPolicy, a single CorrectionFactors,
            or a calibration table mapping

    Raises:
        InvalidGeometryError, DegenerateGeometryError, ConfigError
    """
    config = (config or DEFAULT_CONFIG).with_overrides(
        speed_of_sound=speed_of_sound,
        harmonic_count=harmonic_count,
        frequency_ceiling_hz=frequency_ceiling_hz,
    )
    profile = parse_geometry(raw, position_unit, diameter_unit, config.plausible_length_m)
    return AcousticModel(config, correction_policy).analyze(profile, position_unit)
