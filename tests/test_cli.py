"""
Tests for the didgebore command line.
"""

import io
import json

import pytest
import yaml

from didgebore.calibration import load_policy
from didgebore.cli import ExitCode, main


@pytest.fixture
def bore_file(tmp_path, conical_text):
    path = tmp_path / "bore.txt"
    path.write_text(conical_text)
    return path


@pytest.fixture
def pvc_file(tmp_path, pvc_g2_text):
    path = tmp_path / "pvc.txt"
    path.write_text(pvc_g2_text)
    return path


class TestAnalyzeCommand:

    def test_table_output(self, bore_file, capsys):
        assert main(['analyze', str(bore_file)]) == ExitCode.OK
        out = capsys.readouterr().out
        assert "65.52 Hz" in out
        assert "C2 +3 cents" in out
        assert "strongly_conical" in out

    def test_json_output(self, bore_file, capsys):
        assert main(['analyze', str(bore_file), '--json', '--harmonics', '3']) == ExitCode.OK
        data = json.loads(capsys.readouterr().out)
        assert data['fundamental_frequency'] == pytest.approx(65.517, abs=1e-3)
        assert len(data['harmonics']) == 3

    def test_closed_resonator(self, pvc_file, capsys):
        assert main(['analyze', str(pvc_file), '--resonator', 'closed']) == ExitCode.OK
        assert "G2" in capsys.readouterr().out

    def test_output_file(self, bore_file, tmp_path, capsys):
        output = tmp_path / "result.json"
        assert main(['analyze', str(bore_file), '--output', str(output)]) == ExitCode.OK
        data = json.loads(output.read_text())
        assert data['bore_class'] == "strongly_conical"

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr('sys.stdin', io.StringIO("0 34\n87.8 34\n"))
        assert main(['analyze', '-', '--json']) == ExitCode.OK
        data = json.loads(capsys.readouterr().out)
        assert data['physical_length'] == pytest.approx(0.878)

    def test_policy_file(self, bore_file, tmp_path, capsys):
        table = tmp_path / "table.yaml"
        table.write_text(yaml.safe_dump({
            'version': 'test-table',
            'factors': {
                'near_cylindrical': {},
                'moderately_conical': {},
                'strongly_conical': {'scale_factor': 0.5},
            },
        }))
        assert main(['analyze', str(bore_file), '--policy', str(table), '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['calibration_version'] == 'test-table'
        assert data['fundamental_frequency'] == pytest.approx(98.8188 / 2, abs=1e-3)

    def test_config_file(self, bore_file, tmp_path, capsys):
        config = tmp_path / "config.yaml"
        config.write_text("analysis:\n  speed_of_sound: 350.0\n")
        assert main(['analyze', str(bore_file), '-c', str(config), '--json']) == 0
        assert json.loads(capsys.readouterr().out)['speed_of_sound'] == 350.0

    @pytest.mark.parametrize("text", [
        "frequency_ceiling_hz: null\n",
        "analysis:\n  speed_of_sound: fast\n",
        "analysis: [1, 2]\n",
    ])
    def test_malformed_config_file(self, bore_file, tmp_path, capsys, text):
        config = tmp_path / "config.yaml"
        config.write_text(text)
        assert main(['analyze', str(bore_file), '-c', str(config)]) == ExitCode.INVALID_INPUT
        assert capsys.readouterr().err.startswith("error:")

    def test_invalid_geometry(self, tmp_path, capsys):
        path = tmp_path / "bad.txt"
        path.write_text("0 30\n")
        assert main(['analyze', str(path)]) == ExitCode.INVALID_INPUT
        assert capsys.readouterr().err.startswith("error:")

    def test_missing_file(self, tmp_path, capsys):
        assert main(['analyze', str(tmp_path / "nope.txt")]) == ExitCode.INVALID_INPUT

    def test_degenerate_geometry(self, bore_file, tmp_path, capsys):
        table = tmp_path / "table.yaml"
        table.write_text(yaml.safe_dump({
            'factors': {
                'near_cylindrical': {},
                'moderately_conical': {},
                'strongly_conical': {'end_correction': -1000.0},
            },
        }))
        assert main(['analyze', str(bore_file), '--policy', str(table)]) == \
            ExitCode.RUNTIME_ERROR

    def test_debug_flag(self, bore_file, capsys):
        assert main(['analyze', str(bore_file), '--debug']) == ExitCode.OK


class TestCalibrateCommand:

    def test_writes_table(self, tmp_path, capsys):
        measurements = tmp_path / "measurements.yaml"
        measurements.write_text(yaml.safe_dump({
            'position_unit': 'mm',
            'samples': [{
                'name': 'Didge 1695mm',
                'geometry': "0 30\n800 40\n1695 90",
                'measured_note': 'C2',
            }],
        }))
        output = tmp_path / "table.yaml"
        code = main(['calibrate', str(measurements), '-o', str(output), '--version', 'v2'])
        assert code == ExitCode.OK
        policy = load_policy(output)
        assert policy.version == 'v2'
        assert "v2" in capsys.readouterr().out

    def test_empty_measurements(self, tmp_path, capsys):
        measurements = tmp_path / "measurements.yaml"
        measurements.write_text("samples: []\n")
        code = main(['calibrate', str(measurements), '-o', str(tmp_path / "t.yaml")])
        assert code == ExitCode.INVALID_INPUT


class TestNoteCommand:

    def test_note(self, capsys):
        assert main(['note', '65.5']) == ExitCode.OK
        assert "C2 +2 cents" in capsys.readouterr().out

    def test_note_json(self, capsys):
        assert main(['note', '432', '--a4', '432', '--json']) == ExitCode.OK
        data = json.loads(capsys.readouterr().out)
        assert (data['note'], data['octave'], data['cents']) == ('A', 4, 0)

    def test_non_positive_frequency(self, capsys):
        assert main(['note', '0']) == ExitCode.INVALID_INPUT


class TestUsage:

    def test_no_command(self, capsys):
        assert main([]) == ExitCode.USAGE

    def test_unknown_option(self, capsys):
        assert main(['analyze', 'x', '--bogus']) == ExitCode.USAGE

    def test_help(self, capsys):
        assert main(['--help']) == ExitCode.OK
