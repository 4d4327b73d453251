"""
══════════════════════════════════════════════════════════════════════════════
DIDGEBORE COMMAND LINE
══════════════════════════════════════════════════════════════════════════════

Subcommands:
- analyze:   bore file → fundamental, harmonics, notes
- calibrate: measured instruments → versioned correction table (YAML)
- note:      frequency → note, octave, cents

Example usage:
    didgebore analyze bore.txt --position-unit mm
    didgebore calibrate measurements.yaml --output table.yaml
"""

from enum import IntEnum
from pathlib import Path
from typing import List, Optional
import argparse
import json
import logging
import sys

from .acoustic_model import AcousticModel, AcousticResult
from .calibration import load_policy, save_policy
from .calibration_tool import calibrate_policy, load_samples
from .config import DEFAULT_CONFIG, ResonatorType, load_config
from .errors import (
    BoreAcousticsError,
    CalibrationError,
    ConfigError,
    InvalidFrequencyError,
    InvalidGeometryError,
)
from .geometry import parse_geometry
from .logging_config import setup_logging
from .physics_constants import DEFAULT_DIAMETER_UNIT, DEFAULT_POSITION_UNIT, LENGTH_UNITS
from .pitch import frequency_to_note

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    OK = 0
    USAGE = 2
    INVALID_INPUT = 3
    RUNTIME_ERROR = 10


# ══════════════════════════════════════════════════════════════════════════════
# OUTPUT
# ══════════════════════════════════════════════════════════════════════════════

def format_result(result: AcousticResult) -> str:
    """Human-readable report of one analysis."""
    lines = [
        f"Physical length:   {result.physical_length * 1000:8.1f} mm",
        f"Effective length:  {result.effective_length * 1000:8.1f} mm",
        f"Average diameter:  {result.average_diameter * 1000:8.1f} mm",
        f"Taper ratio:       {result.taper_ratio:8.2f}  ({result.bore_class.value})",
        f"Calibration:       {result.calibration_version}",
        "",
    ]
    fundamental = result.fundamental
    if fundamental is not None:
        lines.append(
            f"Fundamental:       {result.fundamental_frequency:8.2f} Hz  "
            f"{fundamental.note}{fundamental.octave} {fundamental.cents_deviation:+d} cents"
        )
    else:
        lines.append(f"Fundamental:       {result.fundamental_frequency:8.2f} Hz")
    lines.append("")
    lines.append("  n   frequency   note   cents   amplitude   quality")
    lines.append("  " + "─" * 50)
    for h in result.harmonics:
        lines.append(
            f"  {h.index:<2d} {h.frequency:9.2f} Hz  {h.note + str(h.octave):<5} "
            f"{h.cents_deviation:+5d}   {h.amplitude:8.3f}  {h.quality:8.2f}"
        )
    for message in result.warnings:
        lines.append(f"\n⚠ {message}")
    return "\n".join(lines)


def _write_json(data, output: Optional[str]):
    if output:
        output_path = Path(output)
        with open(output_path, 'w') as f:
            json.dump(data, f, indent=2)
        print(f"Results saved to: {output_path}")


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def _read_geometry(source: str) -> str:
    if source == '-':
        return sys.stdin.read()
    with open(source, 'r') as f:
        return f.read()


def cmd_analyze(args: argparse.Namespace) -> int:
    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    config = config.with_overrides(
        speed_of_sound=args.speed_of_sound,
        temperature_c=args.temperature,
        harmonic_count=args.harmonics,
        frequency_ceiling_hz=args.ceiling,
        resonator=args.resonator,
        reference_a4=args.a4,
    )
    policy = load_policy(args.policy) if args.policy else None

    profile = parse_geometry(
        _read_geometry(args.geometry),
        args.position_unit,
        args.diameter_unit,
        config.plausible_length_m,
    )
    result = AcousticModel(config, policy).analyze(profile, args.position_unit)
    logger.info(f"{args.geometry}: f0 = {result.fundamental_frequency:.2f} Hz")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_result(result))
    _write_json(result.to_dict(), args.output)
    return ExitCode.OK


def cmd_calibrate(args: argparse.Namespace) -> int:
    samples = load_samples(args.measurements)
    base = load_policy(args.base) if args.base else None
    policy = calibrate_policy(
        samples,
        base_policy=base,
        version=args.version,
        speed_of_sound=args.speed_of_sound or DEFAULT_CONFIG.speed_of_sound,
        fit_end=args.fit_end_corrections,
    )
    save_policy(policy, args.output)
    print(f"Calibration table {policy.version!r} from {len(samples)} sample(s) "
          f"written to {args.output}")
    return ExitCode.OK


def cmd_note(args: argparse.Namespace) -> int:
    info = frequency_to_note(args.frequency, args.a4 or DEFAULT_CONFIG.reference_a4)
    if args.json:
        print(json.dumps(info.to_dict(), indent=2))
    else:
        print(f"{info.frequency:.2f} Hz → {info.name} {info.cents:+d} cents")
    return ExitCode.OK


# ══════════════════════════════════════════════════════════════════════════════
# PARSER
# ══════════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='didgebore',
        description='Didgeridoo bore acoustics: predict drone pitch and harmonics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a bore file (positions in cm, diameters in mm)
  didgebore analyze bore.txt

  # Positions measured in mm, quarter-wave model, JSON output
  didgebore analyze bore.txt --position-unit mm --resonator closed --json

  # Compact geometry from stdin
  echo "150:30,40,60,90" | didgebore analyze -

  # Refit the correction table against measured instruments
  didgebore calibrate measurements.yaml --output table.yaml --version 2024.1

  # Note of a frequency
  didgebore note 65.5
        """
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--debug', action='store_true', help='Verbose diagnostic logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    units = sorted(LENGTH_UNITS)

    analyze = subparsers.add_parser(
        'analyze', parents=[common], help='Predict pitch of a bore profile')
    analyze.add_argument('geometry', help="Bore file, or '-' for stdin")
    analyze.add_argument('--position-unit', default=DEFAULT_POSITION_UNIT, choices=units,
                         help=f"Unit of positions (default: {DEFAULT_POSITION_UNIT})")
    analyze.add_argument('--diameter-unit', default=DEFAULT_DIAMETER_UNIT, choices=units,
                         help=f"Unit of diameters (default: {DEFAULT_DIAMETER_UNIT})")
    analyze.add_argument('--config', '-c', default=None, help='YAML analysis config')
    analyze.add_argument('--policy', '-p', default=None, help='YAML calibration table')
    analyze.add_argument('--speed-of-sound', type=float, default=None, help='m/s')
    analyze.add_argument('--temperature', type=float, default=None,
                         help='Air temperature °C (overrides speed of sound)')
    analyze.add_argument('--harmonics', type=int, default=None, help='Number of harmonics')
    analyze.add_argument('--ceiling', type=float, default=None, help='Frequency ceiling Hz')
    analyze.add_argument('--resonator', default=None,
                         choices=[r.value for r in ResonatorType],
                         help='open: half-wave (default), closed: quarter-wave')
    analyze.add_argument('--a4', type=float, default=None, help='Reference pitch Hz')
    analyze.add_argument('--json', action='store_true', help='Print JSON instead of a table')
    analyze.add_argument('--output', '-o', default=None, help='Output JSON file')
    analyze.set_defaults(func=cmd_analyze)

    calibrate = subparsers.add_parser(
        'calibrate', parents=[common], help='Fit a correction table')
    calibrate.add_argument('measurements', help='YAML measurement file')
    calibrate.add_argument('--output', '-o', required=True, help='YAML table to write')
    calibrate.add_argument('--version', default=None, help='Version label of the new table')
    calibrate.add_argument('--base', default=None,
                           help='YAML table to start from (default: built-in table)')
    calibrate.add_argument('--speed-of-sound', type=float, default=None, help='m/s')
    calibrate.add_argument('--fit-end-corrections', action='store_true',
                           help='Also grid-search end and mouth corrections per band')
    calibrate.set_defaults(func=cmd_calibrate)

    note = subparsers.add_parser(
        'note', parents=[common], help='Note name of a frequency')
    note.add_argument('frequency', type=float, help='Hz')
    note.add_argument('--a4', type=float, default=None, help='Reference pitch Hz')
    note.add_argument('--json', action='store_true', help='Print JSON')
    note.set_defaults(func=cmd_note)

    return parser


def main(argv: List[str] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return ExitCode.OK if exc.code == 0 else ExitCode.USAGE

    if args.debug:
        setup_logging(debug=True)

    try:
        return args.func(args)
    except (InvalidGeometryError, InvalidFrequencyError, ConfigError, CalibrationError) as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.INVALID_INPUT
    except FileNotFoundError as e:
        print(f"error: file not found: {e.filename}", file=sys.stderr)
        return ExitCode.INVALID_INPUT
    except BoreAcousticsError as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.RUNTIME_ERROR


if __name__ == '__main__':
    sys.exit(main())
