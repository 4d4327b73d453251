"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                CALIBRATION POLICY - Correction factor selection              ║
║                                                                              ║
║   The open-tube formula needs empirical help for real, flaring bores.       ║
║   A CorrectionPolicy picks the coefficients for one bore:                    ║
║                                                                              ║
║   taper ratio (bell r / mouth r)   class                  scale factor       ║
║   ≤ 1.5                            near-cylindrical       1.00               ║
║   1.5 < ratio ≤ 2.5                moderately conical     0.85               ║
║   > 2.5                            strongly conical       0.663              ║
║                                                                              ║
║   The default table was fit against ONE measured instrument (1695 mm,       ║
║   30→90 mm, sounding C2 at 65.5 Hz). It is a replaceable default:           ║
║   recalibrate with didgebore.calibration_tool and load the YAML table.      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Union
import logging
import math

import yaml

from .errors import ConfigError
from .geometry import BoreProfile

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ══════════════════════════════════════════════════════════════════════════════

class BoreClass(Enum):
    """Bore shape classes by taper ratio."""
    NEAR_CYLINDRICAL = "near_cylindrical"
    MODERATELY_CONICAL = "moderately_conical"
    STRONGLY_CONICAL = "strongly_conical"


@dataclass(frozen=True)
class CorrectionFactors:
    """
    Coefficients applied by the acoustic model for one calculation.

    end_correction:    bell end correction, multiplied by bell radius
    mouth_correction:  mouthpiece end correction, multiplied by mouth radius
    taper_coefficient: weight of the relative diameter expansion in the
                       multiplicative taper correction
    scale_factor:      empirical multiplier applied last
    inharmonicity:     per-order overtone stretch for n > 2
    """
    end_correction: float = 0.8
    mouth_correction: float = 0.3
    taper_coefficient: float = 0.0
    scale_factor: float = 1.0
    inharmonicity: float = 0.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigError(f"Correction factor '{f.name}' must be a finite number, "
                                  f"got {value!r}")
        if self.inharmonicity < 0:
            raise ConfigError(f"inharmonicity must be >= 0, got {self.inharmonicity}")

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CorrectionFactors':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(
                f"Unknown correction factor keys: {', '.join(sorted(map(str, unknown)))}"
            )
        try:
            values = {k: float(v) for k, v in data.items()}
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Correction factors must be numbers: {e}") from None
        return cls(**values)


# ══════════════════════════════════════════════════════════════════════════════
# POLICIES
# ══════════════════════════════════════════════════════════════════════════════

class CorrectionPolicy(ABC):
    """
    Strategy selecting CorrectionFactors for a bore.

    Recalibration swaps the policy (or its table), never the resonance
    formula.
    """

    version: str = "unversioned"

    @abstractmethod
    def classify(self, profile: BoreProfile) -> BoreClass:
        """Classify the bore shape."""

    @abstractmethod
    def factors_for_class(self, bore_class: BoreClass) -> CorrectionFactors:
        """Factors associated with a bore class."""

    def factors_for(self, profile: BoreProfile) -> CorrectionFactors:
        """Convenience: classify, then look up."""
        return self.factors_for_class(self.classify(profile))


class FixedCorrectionPolicy(CorrectionPolicy):
    """Same factors for every bore. Classification is still reported."""

    def __init__(self, factors: CorrectionFactors, version: str = "fixed",
                 cylindrical_max: float = 1.5, moderate_max: float = 2.5):
        self.factors = factors
        self.version = version
        self._bands = (cylindrical_max, moderate_max)

    def classify(self, profile: BoreProfile) -> BoreClass:
        return classify_taper(profile.taper_ratio, *self._bands)

    def factors_for_class(self, bore_class: BoreClass) -> CorrectionFactors:
        return self.factors


class TaperBandPolicy(CorrectionPolicy):
    """
    Three-band classification by taper ratio.

    Boundaries belong to the lower band: a ratio of exactly 1.5 is
    near-cylindrical, exactly 2.5 is moderately conical. Bores narrowing
    towards the bell (ratio < 1) fall in the near-cylindrical band; their
    negative expansion still enters the taper correction.
    """

    def __init__(
        self,
        table: Mapping[BoreClass, CorrectionFactors],
        cylindrical_max: float = 1.5,
        moderate_max: float = 2.5,
        version: str = "unversioned",
    ):
        missing = [c.value for c in BoreClass if c not in table]
        if missing:
            raise ConfigError(f"Calibration table lacks bands: {', '.join(missing)}")
        if not cylindrical_max < moderate_max:
            raise ConfigError(
                f"Band limits must increase: {cylindrical_max} !< {moderate_max}"
            )
        self.table: Dict[BoreClass, CorrectionFactors] = dict(table)
        self.cylindrical_max = cylindrical_max
        self.moderate_max = moderate_max
        self.version = version

    def classify(self, profile: BoreProfile) -> BoreClass:
        return classify_taper(profile.taper_ratio, self.cylindrical_max, self.moderate_max)

    def factors_for_class(self, bore_class: BoreClass) -> CorrectionFactors:
        return self.table[bore_class]

    def with_factors(self, bore_class: BoreClass, factors: CorrectionFactors,
                     version: str = None) -> 'TaperBandPolicy':
        """Copy of this policy with one band replaced."""
        table = dict(self.table)
        table[bore_class] = factors
        return TaperBandPolicy(table, self.cylindrical_max, self.moderate_max,
                               version=version or self.version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'bands': {
                'cylindrical_max': self.cylindrical_max,
                'moderate_max': self.moderate_max,
            },
            'factors': {c.value: self.table[c].to_dict() for c in BoreClass},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TaperBandPolicy':
        try:
            factors = data['factors']
        except (KeyError, TypeError):
            raise ConfigError("Calibration table needs a 'factors' mapping") from None
        if not isinstance(factors, Mapping):
            raise ConfigError("Calibration table needs a 'factors' mapping")
        bands = data.get('bands', {}) or {}
        table = {}
        for key, values in factors.items():
            try:
                bore_class = BoreClass(key)
            except ValueError:
                valid = ", ".join(c.value for c in BoreClass)
                raise ConfigError(f"Unknown bore class '{key}'. Valid: {valid}") from None
            table[bore_class] = CorrectionFactors.from_dict(values)
        return cls(
            table,
            cylindrical_max=float(bands.get('cylindrical_max', 1.5)),
            moderate_max=float(bands.get('moderate_max', 2.5)),
            version=str(data.get('version', 'unversioned')),
        )

    def __repr__(self) -> str:
        return (f"TaperBandPolicy(version={self.version!r}, "
                f"bands=({self.cylindrical_max}, {self.moderate_max}))")


def classify_taper(taper_ratio: float, cylindrical_max: float = 1.5,
                   moderate_max: float = 2.5) -> BoreClass:
    """Band lookup, boundaries closed on the lower band."""
    if taper_ratio <= cylindrical_max:
        return BoreClass.NEAR_CYLINDRICAL
    if taper_ratio <= moderate_max:
        return BoreClass.MODERATELY_CONICAL
    return BoreClass.STRONGLY_CONICAL


# ══════════════════════════════════════════════════════════════════════════════
# DEFAULT TABLE
# ══════════════════════════════════════════════════════════════════════════════

# Strongly conical scale: 65.5 Hz measured / 98.82 Hz predicted for the
# 1695 mm reference didgeridoo with end 0.8 and mouth 0.3.
DEFAULT_TABLE: Dict[BoreClass, CorrectionFactors] = {
    BoreClass.NEAR_CYLINDRICAL: CorrectionFactors(scale_factor=1.0, inharmonicity=0.0),
    BoreClass.MODERATELY_CONICAL: CorrectionFactors(scale_factor=0.85, inharmonicity=0.005),
    BoreClass.STRONGLY_CONICAL: CorrectionFactors(scale_factor=0.663, inharmonicity=0.01),
}

DEFAULT_TABLE_VERSION = "2023.1-single-instrument"


def default_policy() -> TaperBandPolicy:
    return TaperBandPolicy(DEFAULT_TABLE, version=DEFAULT_TABLE_VERSION)


# ══════════════════════════════════════════════════════════════════════════════
# PERSISTENCE
# ══════════════════════════════════════════════════════════════════════════════

PolicyLike = Union[CorrectionPolicy, CorrectionFactors, Mapping[str, Any], None]


def resolve_policy(policy: PolicyLike) -> CorrectionPolicy:
    """
    Accept a policy, a single factor set, or a table mapping.

    A table is either the saved form (with a 'factors' key) or a bare
    mapping from BoreClass (or its value) to factors.

    None means the default table.
    """
    if policy is None:
        return default_policy()
    if isinstance(policy, CorrectionPolicy):
        return policy
    if isinstance(policy, CorrectionFactors):
        return FixedCorrectionPolicy(policy)
    if isinstance(policy, Mapping):
        if 'factors' in policy:
            return TaperBandPolicy.from_dict(policy)
        if policy and all(_is_bore_class(key) for key in policy):
            return _table_policy(policy)
        return FixedCorrectionPolicy(CorrectionFactors.from_dict(policy))
    raise ConfigError(f"Cannot build a correction policy from {type(policy).__name__}")


def _is_bore_class(key: Any) -> bool:
    if isinstance(key, BoreClass):
        return True
    return isinstance(key, str) and key in {c.value for c in BoreClass}


def _table_policy(table: Mapping[Any, Any]) -> TaperBandPolicy:
    """Bare per-class table, keyed by BoreClass or its string value."""
    resolved = {}
    for key, values in table.items():
        if not isinstance(values, (CorrectionFactors, Mapping)):
            raise ConfigError(f"Factors for band '{BoreClass(key).value}' must be a mapping")
        resolved[BoreClass(key)] = (values if isinstance(values, CorrectionFactors)
                                    else CorrectionFactors.from_dict(values))
    return TaperBandPolicy(resolved, version="custom")


def save_policy(policy: TaperBandPolicy, path: Union[str, Path]) -> Path:
    """Write a band policy as a versioned YAML table."""
    path = Path(path)
    with open(path, 'w') as f:
        yaml.safe_dump(policy.to_dict(), f, sort_keys=False)
    logger.info(f"Saved calibration table {policy.version!r} to {path}")
    return path


def load_policy(path: Union[str, Path]) -> TaperBandPolicy:
    """Read a versioned YAML table written by save_policy."""
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Calibration table {path} is not valid YAML: {e}") from None
    if not isinstance(data, Mapping):
        raise ConfigError(f"Calibration table {path} is not a mapping")
    policy = TaperBandPolicy.from_dict(data)
    logger.info(f"Loaded calibration table {policy.version!r} from {path}")
    return policy
