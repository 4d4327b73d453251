"""
didgebore - Didgeridoo bore acoustics.

Bore profile in, predicted drone pitch and harmonic series out.
"""

from didgebore.errors import (
    BoreAcousticsError,
    InvalidGeometryError,
    DegenerateGeometryError,
    InvalidFrequencyError,
    ConfigError,
    CalibrationError,
    AmbiguousUnitsWarning,
)
from didgebore.geometry import BorePoint, BoreProfile, parse_geometry
from didgebore.pitch import NoteInfo, frequency_to_note, note_to_frequency
from didgebore.harmonics import (
    AmplitudeProfile,
    HarmonicEntry,
    HarmonicSeries,
    harmonic_quality,
)
from didgebore.calibration import (
    BoreClass,
    CorrectionFactors,
    CorrectionPolicy,
    FixedCorrectionPolicy,
    TaperBandPolicy,
    default_policy,
    load_policy,
    save_policy,
)
from didgebore.config import AnalysisConfig, ResonatorType, load_config
from didgebore.acoustic_model import (
    AcousticModel,
    AcousticResult,
    analyze_bore,
    estimate_fundamental,
    result_advisories,
)

__version__ = "0.3.0"

__all__ = [
    # Errors
    'BoreAcousticsError',
    'InvalidGeometryError',
    'DegenerateGeometryError',
    'InvalidFrequencyError',
    'ConfigError',
    'CalibrationError',
    'AmbiguousUnitsWarning',

    # Geometry
    'BorePoint',
    'BoreProfile',
    'parse_geometry',

    # Pitch
    'NoteInfo',
    'frequency_to_note',
    'note_to_frequency',

    # Harmonics
    'AmplitudeProfile',
    'HarmonicEntry',
    'HarmonicSeries',
    'harmonic_quality',

    # Calibration policy
    'BoreClass',
    'CorrectionFactors',
    'CorrectionPolicy',
    'FixedCorrectionPolicy',
    'TaperBandPolicy',
    'default_policy',
    'load_policy',
    'save_policy',

    # Model
    'AnalysisConfig',
    'ResonatorType',
    'load_config',
    'AcousticModel',
    'AcousticResult',
    'analyze_bore',
    'estimate_fundamental',
    'result_advisories',
]
