"""
Pitch mapping - frequency to equal-tempered note, octave and cents.

Reference pitch defaults to A4 = 440 Hz; C0 sits 4.75 octaves below A4.
"""

from dataclasses import dataclass
from typing import Dict, Any
import math
import re

from .errors import InvalidFrequencyError
from .physics_constants import NOTE_NAMES, PITCH

_FLAT_TO_SHARP = {
    'DB': 'C#', 'EB': 'D#', 'GB': 'F#', 'AB': 'G#', 'BB': 'A#',
    'CB': 'B', 'FB': 'E', 'B#': 'C', 'E#': 'F',
}

_NOTE_RE = re.compile(r'^([A-G])([#B]?)(-?\d+)$')


@dataclass(frozen=True)
class NoteInfo:
    """Nearest equal-tempered note of a frequency."""
    note: str
    octave: int
    cents: int             # rounded deviation from the note, ~[-50, +50]
    cents_exact: float
    note_number: int       # semitones above C0
    frequency: float

    @property
    def name(self) -> str:
        return f"{self.note}{self.octave}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'note': self.note,
            'octave': self.octave,
            'cents': self.cents,
            'cents_exact': self.cents_exact,
            'note_number': self.note_number,
            'frequency': self.frequency,
        }


def _check_frequency(frequency: float) -> float:
    try:
        f = float(frequency)
    except (TypeError, ValueError):
        raise InvalidFrequencyError(f"Frequency must be a number, got {frequency!r}") from None
    if not math.isfinite(f) or f <= 0:
        raise InvalidFrequencyError(f"Frequency must be positive and finite, got {frequency}")
    return f


def round_half_up(value: float) -> int:
    """Nearest integer, halves towards +inf (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def frequency_to_note(frequency: float, a4: float = PITCH.a4) -> NoteInfo:
    """
    Map a frequency to its nearest equal-tempered note.

    note_number = round_half_up(12 * log2(f / C0))
    cents       = 1200 * log2(f / (C0 * 2^(note_number / 12)))

    Raises:
        InvalidFrequencyError: frequency <= 0 or not finite
    """
    f = _check_frequency(frequency)
    c0 = PITCH.c0(_check_frequency(a4))

    semitones = 12.0 * math.log2(f / c0)
    note_number = round_half_up(semitones)
    cents_exact = 1200.0 * math.log2(f / (c0 * 2.0 ** (note_number / 12.0)))

    return NoteInfo(
        note=NOTE_NAMES[note_number % 12],
        octave=note_number // 12,
        cents=round_half_up(cents_exact),
        cents_exact=cents_exact,
        note_number=note_number,
        frequency=f,
    )


def note_frequency(note_number: float, a4: float = PITCH.a4) -> float:
    """Frequency of a (possibly fractional) semitone count above C0."""
    return PITCH.c0(_check_frequency(a4)) * 2.0 ** (note_number / 12.0)


def note_to_frequency(note: str, a4: float = PITCH.a4) -> float:
    """
    Frequency of a note name such as 'D2', 'C#3', 'Eb1' or 'A-1'.

    Raises:
        ValueError: unparseable note name
    """
    s = note.strip().upper().replace('♭', 'B').replace('♯', '#')
    m = _NOTE_RE.match(s)
    if not m:
        raise ValueError(f"Bad note format: '{note}' (expected like D2, C#3, Eb1)")
    letter, accidental, octave = m.group(1), m.group(2), int(m.group(3))
    name = _FLAT_TO_SHARP.get(letter + accidental, letter + accidental)
    if name == 'C' and letter + accidental == 'B#':
        octave += 1
    elif name == 'B' and letter + accidental == 'CB':
        octave -= 1
    return note_frequency(octave * 12 + NOTE_NAMES.index(name), a4)
