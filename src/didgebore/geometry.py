"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    BORE GEOMETRY - Parser & Profile                          ║
║                                                                              ║
║   Turns raw bore measurements into a validated BoreProfile in metres.        ║
║                                                                              ║
║   Accepted encodings:                                                        ║
║   • "position diameter" pairs, whitespace / newline separated               ║
║       0    30      # mouthpiece                                              ║
║       10   30                                                                ║
║       169.5 90     // bell                                                   ║
║   • Compact "length:d1,d2,...,dn", diameters spread evenly over length      ║
║       1500:50,45,40,35       DIDGMO:1500,50,45,40,35                         ║
║   • Structured: [(pos, dia), ...], [{"position":..,"diameter":..}, ...],     ║
║     or an (N, 2) numpy array                                                 ║
║                                                                              ║
║   Units are declared by the caller. This module is the single place where   ║
║   positions and diameters are converted to metres.                          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import math
import re
import warnings

import numpy as np

from .errors import AmbiguousUnitsWarning, InvalidGeometryError
from .physics_constants import (
    DEFAULT_DIAMETER_UNIT,
    DEFAULT_POSITION_UNIT,
    INSTRUMENT_LIMITS,
    LENGTH_UNITS,
)

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r'[\s,;]+')
_COMPACT_PREFIX = re.compile(r'^\s*DIDGMO\s*:', re.IGNORECASE)

RawGeometry = Union[str, np.ndarray, Sequence[Any]]


# ══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BorePoint:
    """One measurement: distance from the mouthpiece and bore diameter [m]."""
    position: float
    diameter: float

    @property
    def radius(self) -> float:
        return self.diameter / 2.0


@dataclass(frozen=True)
class BoreProfile:
    """
    Validated, ordered bore measurements of one instrument, in metres.

    Invariants (checked on construction):
    - at least 2 points
    - positions finite, non-negative and non-decreasing
    - last position (the bore length) strictly positive
    - diameters finite and strictly positive
    """
    points: Tuple[BorePoint, ...]

    def __post_init__(self):
        points = tuple(self.points)
        object.__setattr__(self, 'points', points)

        if len(points) < 2:
            raise InvalidGeometryError(
                f"At least 2 bore points are required, got {len(points)}",
                details={'n_points': len(points)}
            )

        previous = None
        for i, point in enumerate(points):
            if not (math.isfinite(point.position) and math.isfinite(point.diameter)):
                raise InvalidGeometryError(
                    f"Point {i}: position and diameter must be finite numbers",
                    details={'index': i}
                )
            if point.diameter <= 0:
                raise InvalidGeometryError(
                    f"Point {i}: diameter must be positive, got {point.diameter}",
                    details={'index': i, 'diameter': point.diameter}
                )
            if point.position < 0:
                raise InvalidGeometryError(
                    f"Point {i}: position must not be negative, got {point.position}",
                    details={'index': i, 'position': point.position}
                )
            if previous is not None and point.position < previous.position:
                raise InvalidGeometryError(
                    f"Point {i}: position {point.position} is before previous "
                    f"position {previous.position}",
                    details={'index': i, 'position': point.position}
                )
            previous = point

        if points[-1].position <= 0:
            raise InvalidGeometryError(
                f"Bore length must be positive, got {points[-1].position}",
                details={'physical_length': points[-1].position}
            )

    # ──────────────────────────────────────────────────────────────────────
    # Derived descriptors
    # ──────────────────────────────────────────────────────────────────────

    @property
    def positions(self) -> np.ndarray:
        return np.array([p.position for p in self.points])

    @property
    def diameters(self) -> np.ndarray:
        return np.array([p.diameter for p in self.points])

    @property
    def physical_length(self) -> float:
        """Position of the last point (the bell) [m]."""
        return self.points[-1].position

    @property
    def mouth_radius(self) -> float:
        return self.points[0].radius

    @property
    def bell_radius(self) -> float:
        return self.points[-1].radius

    @property
    def average_diameter(self) -> float:
        """Plain mean over all measured diameters [m]."""
        return float(np.mean(self.diameters))

    @property
    def taper_ratio(self) -> float:
        """
        Bell radius / mouth radius.

        Below 1 for bores that narrow towards the bell.
        """
        return self.bell_radius / self.mouth_radius

    @property
    def taper_delta(self) -> float:
        """Relative diameter expansion (bell - mouth) / mouth."""
        mouth = self.points[0].diameter
        return (self.points[-1].diameter - mouth) / mouth

    @property
    def taper_factor(self) -> float:
        """
        Local flare strength: mean of the largest and the average
        |ln(r_out / r_in)| over all segments. 0 for a cylinder.
        """
        radii = self.diameters / 2.0
        tapers = np.abs(np.log(radii[1:] / radii[:-1]))
        return float((tapers.max() + tapers.mean()) / 2.0)

    @property
    def volume(self) -> float:
        """Internal air volume, summed over truncated-cone segments [m³]."""
        return float(np.sum(self._segment_volumes()))

    @property
    def volume_weighted_radius(self) -> float:
        """Mean segment radius weighted by segment volume [m]."""
        volumes = self._segment_volumes()
        total = np.sum(volumes)
        if total <= 0:
            return self.average_diameter / 2.0
        radii = self.diameters / 2.0
        mean_radii = (radii[:-1] + radii[1:]) / 2.0
        return float(np.sum(mean_radii * volumes) / total)

    def _segment_volumes(self) -> np.ndarray:
        radii = self.diameters / 2.0
        lengths = np.diff(self.positions)
        r1, r2 = radii[:-1], radii[1:]
        return np.pi * lengths * (r1 * r1 + r1 * r2 + r2 * r2) / 3.0

    def scaled(self, factor: float) -> 'BoreProfile':
        """Geometrically similar bore with every dimension multiplied by factor."""
        return BoreProfile(tuple(
            BorePoint(p.position * factor, p.diameter * factor) for p in self.points
        ))

    def length_is_plausible(self, length_range: Tuple[float, float] = None) -> bool:
        low, high = length_range or INSTRUMENT_LIMITS.length_range
        return low <= self.physical_length <= high

    def to_dict(self) -> dict:
        return {
            'positions_m': [p.position for p in self.points],
            'diameters_m': [p.diameter for p in self.points],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BoreProfile':
        return cls(tuple(
            BorePoint(float(pos), float(dia))
            for pos, dia in zip(data['positions_m'], data['diameters_m'])
        ))

    def __len__(self) -> int:
        return len(self.points)


# ══════════════════════════════════════════════════════════════════════════════
# UNIT HANDLING
# ══════════════════════════════════════════════════════════════════════════════

def unit_scale(unit: str) -> float:
    """Metres per unit. Raises InvalidGeometryError for unknown units."""
    key = unit.strip().lower() if isinstance(unit, str) else unit
    if key not in LENGTH_UNITS:
        available = ", ".join(LENGTH_UNITS)
        raise InvalidGeometryError(f"Unknown length unit '{unit}'. Available: {available}")
    return LENGTH_UNITS[key]


def suggest_position_unit(raw_length: float,
                          length_range: Tuple[float, float] = None) -> Optional[str]:
    """
    Name a unit under which raw_length would be a plausible bore length.

    Only used to word the advisory; the caller's declared unit is never
    replaced. Returns None when no unit fits.
    """
    low, high = length_range or INSTRUMENT_LIMITS.length_range
    for unit in (DEFAULT_POSITION_UNIT, 'mm', 'm'):
        if low <= raw_length * LENGTH_UNITS[unit] <= high:
            return unit
    return None


def unit_advisories(profile: BoreProfile, position_unit: str,
                    length_range: Tuple[float, float] = None) -> List[str]:
    """Messages describing implausible dimensions of an already-parsed profile."""
    length_range = length_range or INSTRUMENT_LIMITS.length_range
    if profile.length_is_plausible(length_range):
        return []

    low, high = length_range
    raw_length = profile.physical_length / unit_scale(position_unit)
    message = (
        f"Bore length {profile.physical_length:.3f} m is outside the plausible "
        f"range {low:g}-{high:g} m for positions declared in '{position_unit}'"
    )
    suggestion = suggest_position_unit(raw_length, length_range)
    if suggestion and suggestion != position_unit:
        message += f"; the values look like '{suggestion}'"
    return [message]


# ══════════════════════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════════════════════

def _strip_comment(line: str) -> str:
    return line.split('#', 1)[0].split('//', 1)[0].strip()


def _to_float(token: str, line: Optional[int], what: str) -> float:
    try:
        value = float(token)
    except ValueError:
        raise InvalidGeometryError(
            f"Line {line}: {what} '{token}' is not a number" if line
            else f"{what} '{token}' is not a number",
            line=line,
            details={'token': token}
        ) from None
    if not math.isfinite(value):
        raise InvalidGeometryError(
            f"Line {line}: {what} must be finite" if line else f"{what} must be finite",
            line=line,
            details={'token': token}
        )
    return value


def _parse_compact(body: str, line: Optional[int]) -> List[Tuple[float, float]]:
    """Parse 'length:d1,d2,...' or 'length,d1,d2,...' (after a DIDGMO: prefix)."""
    if _COMPACT_PREFIX.match(body):
        body = _COMPACT_PREFIX.sub('', body, count=1)
        length_token, _, rest = body.partition(',')
    else:
        length_token, _, rest = body.partition(':')

    length = _to_float(length_token.strip(), line, 'length')
    tokens = [t for t in _SEPARATORS.split(rest.strip()) if t]
    diameters = [_to_float(t, line, 'diameter') for t in tokens]

    if length <= 0:
        raise InvalidGeometryError(f"Compact geometry length must be positive, got {length}",
                                   line=line)
    if len(diameters) < 2:
        raise InvalidGeometryError(
            f"Compact geometry needs at least 2 diameters, got {len(diameters)}",
            line=line,
            details={'n_diameters': len(diameters)}
        )

    positions = np.linspace(0.0, length, len(diameters))
    return list(zip(positions.tolist(), diameters))


def _parse_text(text: str) -> List[Tuple[float, float]]:
    content = [(i + 1, _strip_comment(raw)) for i, raw in enumerate(text.splitlines())]
    content = [(n, line) for n, line in content if line]

    if not content:
        raise InvalidGeometryError("Geometry text is empty")

    if len(content) == 1 and (':' in content[0][1]):
        return _parse_compact(content[0][1], content[0][0])

    values: List[Tuple[float, int]] = []
    for line_no, line in content:
        if ':' in line:
            raise InvalidGeometryError(
                f"Line {line_no}: compact 'length:d1,d2,...' geometry must be the only entry",
                line=line_no
            )
        for token in _SEPARATORS.split(line):
            if token:
                values.append((_to_float(token, line_no, 'value'), line_no))

    if len(values) % 2:
        raise InvalidGeometryError(
            f"Line {values[-1][1]}: unpaired value {values[-1][0]:g}; "
            "expected 'position diameter' pairs",
            line=values[-1][1]
        )

    return [(values[i][0], values[i + 1][0]) for i in range(0, len(values), 2)]


def _parse_structured(data: Iterable[Any]) -> List[Tuple[float, float]]:
    pairs = []
    for i, item in enumerate(data):
        if isinstance(item, Mapping):
            try:
                pos, dia = item['position'], item['diameter']
            except KeyError as exc:
                raise InvalidGeometryError(
                    f"Point {i}: missing key {exc}", details={'index': i}
                ) from None
        else:
            try:
                pos, dia = item
            except (TypeError, ValueError):
                raise InvalidGeometryError(
                    f"Point {i}: expected a (position, diameter) pair, got {item!r}",
                    details={'index': i}
                ) from None
        try:
            pairs.append((float(pos), float(dia)))
        except (TypeError, ValueError):
            raise InvalidGeometryError(
                f"Point {i}: position and diameter must be numbers",
                details={'index': i}
            ) from None
    return pairs


def parse_geometry(
    raw: RawGeometry,
    position_unit: str = DEFAULT_POSITION_UNIT,
    diameter_unit: str = DEFAULT_DIAMETER_UNIT,
    length_range: Tuple[float, float] = None,
) -> BoreProfile:
    """
    Parse raw bore measurements into a BoreProfile in metres.

    Args:
        raw: text in either supported encoding, a sequence of pairs or
            mappings, or an (N, 2) array
        position_unit: unit of positions (and of the compact length)
        diameter_unit: unit of diameters
        length_range: plausible bore length [m] for the unit advisory

    Returns:
        Validated BoreProfile

    Raises:
        InvalidGeometryError: fewer than 2 points, non-positive diameter,
            decreasing positions or unparseable input

    Warns:
        AmbiguousUnitsWarning: the length is implausible in the declared unit.
        Values are still interpreted in the declared unit.
    """
    pos_scale = unit_scale(position_unit)
    dia_scale = unit_scale(diameter_unit)

    if raw is None:
        raise InvalidGeometryError("No geometry given")
    if isinstance(raw, str):
        pairs = _parse_text(raw)
    elif isinstance(raw, np.ndarray):
        if raw.ndim != 2 or raw.shape[1] != 2:
            raise InvalidGeometryError(
                f"Geometry array must have shape (N, 2), got {raw.shape}"
            )
        pairs = [(float(p), float(d)) for p, d in raw]
    else:
        pairs = _parse_structured(raw)

    profile = BoreProfile(tuple(
        BorePoint(pos * pos_scale, dia * dia_scale) for pos, dia in pairs
    ))

    for message in unit_advisories(profile, position_unit, length_range):
        logger.warning(message)
        warnings.warn(message, AmbiguousUnitsWarning, stacklevel=2)

    logger.debug(
        f"Parsed {len(profile)} points: L={profile.physical_length:.4f} m, "
        f"mouth={profile.points[0].diameter * 1000:.1f} mm, "
        f"bell={profile.points[-1].diameter * 1000:.1f} mm"
    )
    return profile
