"""
╔══════════════════════════════════════════════════════════════════════════════╗
║               CALIBRATION TOOL - Fit correction tables offline               ║
║                                                                              ║
║   Fits the model to measured instruments and writes a new, versioned        ║
║   TaperBandPolicy. The acoustic model itself is never edited:               ║
║                                                                              ║
║   1. fit_end_corrections: grid search of (end, mouth) coefficients that     ║
║      make the uncorrected open-tube pitch match the measurements            ║
║   2. fit_scale_factor: measured / predicted for the remaining error         ║
║   3. calibrate_policy: refit scale factors per taper band                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union
import logging

import numpy as np
import yaml
from scipy import optimize

from .acoustic_model import estimate_fundamental
from .calibration import BoreClass, CorrectionFactors, TaperBandPolicy, default_policy
from .errors import CalibrationError, DegenerateGeometryError
from .geometry import BoreProfile, parse_geometry
from .physics_constants import AIR, DEFAULT_DIAMETER_UNIT, DEFAULT_POSITION_UNIT
from .pitch import note_to_frequency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationSample:
    """A measured instrument: bore plus the drone frequency it actually plays."""
    name: str
    profile: BoreProfile
    measured_frequency: float


@dataclass(frozen=True)
class EndCorrectionFit:
    """Result of the (end, mouth) grid search."""
    end_correction: float
    mouth_correction: float
    rms_relative_error: float
    predictions: Tuple[float, ...]


# ══════════════════════════════════════════════════════════════════════════════
# FITTING
# ══════════════════════════════════════════════════════════════════════════════

def _predict(sample: CalibrationSample, factors: CorrectionFactors,
             speed_of_sound: float, wavelength_factor: int) -> float:
    return estimate_fundamental(
        sample.profile, factors, speed_of_sound, wavelength_factor
    ).fundamental_frequency


def fit_end_corrections(
    samples: Sequence[CalibrationSample],
    speed_of_sound: float = AIR.speed_of_sound,
    end_range: Tuple[float, float] = (0.1, 3.0),
    mouth_range: Tuple[float, float] = (0.1, 3.0),
    step: float = 0.1,
    wavelength_factor: int = 2,
) -> EndCorrectionFit:
    """
    Grid-search end and mouth coefficients (no taper, no scale).

    Minimizes the RMS relative pitch error over all samples. The grid
    includes both range ends.
    """
    if not samples:
        raise CalibrationError("No calibration samples given")
    if step <= 0:
        raise CalibrationError(f"Grid step must be positive, got {step}")

    measured = np.array([s.measured_frequency for s in samples], dtype=float)

    def cost(params: np.ndarray) -> float:
        factors = CorrectionFactors(end_correction=float(params[0]),
                                    mouth_correction=float(params[1]))
        try:
            predicted = np.array([
                _predict(s, factors, speed_of_sound, wavelength_factor) for s in samples
            ])
        except DegenerateGeometryError:
            return np.inf
        return float(np.sqrt(np.mean(((predicted - measured) / measured) ** 2)))

    ranges = (
        slice(end_range[0], end_range[1] + step / 2, step),
        slice(mouth_range[0], mouth_range[1] + step / 2, step),
    )
    best, best_cost, _, _ = optimize.brute(cost, ranges, full_output=True, finish=None)
    end_correction, mouth_correction = (round(float(v), 6) for v in best)

    factors = CorrectionFactors(end_correction=end_correction,
                                mouth_correction=mouth_correction)
    predictions = tuple(_predict(s, factors, speed_of_sound, wavelength_factor)
                        for s in samples)

    logger.info(
        f"End-correction fit over {len(samples)} sample(s): end={end_correction:.2f}, "
        f"mouth={mouth_correction:.2f}, RMS error {100 * best_cost:.2f}%"
    )
    return EndCorrectionFit(end_correction, mouth_correction, float(best_cost), predictions)


def fit_scale_factor(
    samples: Sequence[CalibrationSample],
    factors: CorrectionFactors,
    speed_of_sound: float = AIR.speed_of_sound,
    wavelength_factor: int = 2,
) -> float:
    """
    Scale factor mapping predictions onto measurements.

    Geometric mean of measured / predicted, where predicted uses the given
    factors with scale_factor = 1.
    """
    if not samples:
        raise CalibrationError("No calibration samples given")
    unscaled = replace(factors, scale_factor=1.0)
    ratios = np.array([
        s.measured_frequency / _predict(s, unscaled, speed_of_sound, wavelength_factor)
        for s in samples
    ])
    return float(np.exp(np.mean(np.log(ratios))))


def calibrate_policy(
    samples: Sequence[CalibrationSample],
    base_policy: TaperBandPolicy = None,
    version: str = None,
    speed_of_sound: float = AIR.speed_of_sound,
    fit_end: bool = False,
    wavelength_factor: int = 2,
) -> TaperBandPolicy:
    """
    Refit a band policy against measured instruments.

    Samples are grouped by the band the base policy puts them in; each band
    with samples gets a new scale factor, other bands keep their factors.
    With fit_end, end and mouth coefficients are refit per band first.

    Returns:
        New TaperBandPolicy; the base policy is left untouched.
    """
    if not samples:
        raise CalibrationError("No calibration samples given")
    policy = base_policy or default_policy()
    version = version or f"{policy.version}-recalibrated"

    groups: Dict[BoreClass, List[CalibrationSample]] = {}
    for sample in samples:
        groups.setdefault(policy.classify(sample.profile), []).append(sample)

    table = dict(policy.table)
    for bore_class, members in groups.items():
        factors = table[bore_class]
        if fit_end:
            fit = fit_end_corrections(members, speed_of_sound,
                                      wavelength_factor=wavelength_factor)
            factors = replace(factors, end_correction=fit.end_correction,
                              mouth_correction=fit.mouth_correction)
        scale = fit_scale_factor(members, factors, speed_of_sound, wavelength_factor)
        table[bore_class] = replace(factors, scale_factor=round(scale, 4))
        logger.info(
            f"{bore_class.value}: {len(members)} sample(s), "
            f"scale {policy.table[bore_class].scale_factor:.4f} → {scale:.4f}"
        )

    return TaperBandPolicy(table, policy.cylindrical_max, policy.moderate_max, version=version)


# ══════════════════════════════════════════════════════════════════════════════
# MEASUREMENT FILES
# ══════════════════════════════════════════════════════════════════════════════

def samples_from_dict(data: Mapping[str, Any]) -> List[CalibrationSample]:
    """
    Build samples from a measurement mapping:

        position_unit: mm
        diameter_unit: mm
        samples:
          - name: Reference 1695
            geometry: "0 30\\n100 30\\n..."
            measured_frequency: 65.5     # or measured_note: C2
    """
    position_unit = data.get('position_unit', DEFAULT_POSITION_UNIT)
    diameter_unit = data.get('diameter_unit', DEFAULT_DIAMETER_UNIT)
    entries = data.get('samples') or []
    if not entries:
        raise CalibrationError("Measurement file has no samples")

    samples = []
    for i, entry in enumerate(entries):
        name = entry.get('name', f"sample_{i}")
        if 'measured_frequency' in entry:
            measured = float(entry['measured_frequency'])
        elif 'measured_note' in entry:
            try:
                measured = note_to_frequency(str(entry['measured_note']))
            except ValueError as exc:
                raise CalibrationError(f"Sample '{name}': {exc}") from None
        else:
            raise CalibrationError(f"Sample '{name}' has no measured_frequency or measured_note")
        if measured <= 0:
            raise CalibrationError(f"Sample '{name}': measured frequency must be positive")
        profile = parse_geometry(entry['geometry'], position_unit, diameter_unit)
        samples.append(CalibrationSample(name, profile, measured))
    return samples


def load_samples(path: Union[str, Path]) -> List[CalibrationSample]:
    """Read a YAML measurement file."""
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CalibrationError(f"Measurement file {path} is not valid YAML: {e}") from None
    if not isinstance(data, Mapping):
        raise CalibrationError(f"Measurement file {path} is not a mapping")
    return samples_from_dict(data)
