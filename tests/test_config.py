"""
Tests for AnalysisConfig and YAML loading.
"""

import pytest

from didgebore.config import DEFAULT_CONFIG, AnalysisConfig, ResonatorType, load_config
from didgebore.errors import ConfigError
from didgebore.harmonics import AmplitudeProfile
from didgebore.physics_constants import AIR


class TestAnalysisConfig:

    def test_defaults(self):
        assert DEFAULT_CONFIG.speed_of_sound == 343.0
        assert DEFAULT_CONFIG.harmonic_count == 6
        assert DEFAULT_CONFIG.frequency_ceiling_hz == 2000.0
        assert DEFAULT_CONFIG.resonator is ResonatorType.OPEN_OPEN
        assert DEFAULT_CONFIG.reference_a4 == 440.0

    def test_resonator_from_string(self):
        config = AnalysisConfig(resonator="Closed")
        assert config.resonator is ResonatorType.CLOSED_OPEN
        assert config.resonator.wavelength_factor == 4

    def test_unknown_resonator(self):
        with pytest.raises(ConfigError):
            AnalysisConfig(resonator="stopped")

    def test_temperature_overrides_speed(self):
        config = AnalysisConfig(speed_of_sound=300.0, temperature_c=20.0)
        assert config.effective_speed_of_sound == pytest.approx(343.2, abs=0.05)
        assert AnalysisConfig(speed_of_sound=300.0).effective_speed_of_sound == 300.0

    @pytest.mark.parametrize("kwargs", [
        {'speed_of_sound': 0.0},
        {'speed_of_sound': float('nan')},
        {'temperature_c': -300.0},
        {'reference_a4': -440.0},
        {'harmonic_count': 0},
        {'harmonic_count': 2.5},
        {'frequency_ceiling_hz': 0.0},
        {'plausible_length_m': (5.0, 0.2)},
        {'speed_of_sound': 'fast'},
        {'frequency_ceiling_hz': None},
        {'reference_a4': [440]},
        {'harmonic_count': 'six'},
        {'temperature_c': 'warm'},
        {'plausible_length_m': 3.0},
        {'resonator': 4},
        {'amplitude': {'boosts': [1, 2]}},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigError):
            AnalysisConfig(**kwargs)

    def test_with_overrides_skips_none(self):
        config = DEFAULT_CONFIG.with_overrides(harmonic_count=10, speed_of_sound=None)
        assert config.harmonic_count == 10
        assert config.speed_of_sound == DEFAULT_CONFIG.speed_of_sound
        assert DEFAULT_CONFIG.harmonic_count == 6

    def test_with_overrides_unknown_key(self):
        with pytest.raises(ConfigError):
            DEFAULT_CONFIG.with_overrides(colour="red")

    def test_dict_round_trip(self):
        config = AnalysisConfig(temperature_c=25.0, resonator="closed",
                                amplitude=AmplitudeProfile(attenuation=0.5))
        assert AnalysisConfig.from_dict(config.to_dict()) == config


class TestLoadConfig:

    def test_top_level_fields(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("harmonic_count: 8\nresonator: closed\n")
        config = load_config(path)
        assert config.harmonic_count == 8
        assert config.resonator is ResonatorType.CLOSED_OPEN

    def test_analysis_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "analysis:\n"
            "  temperature_c: 30\n"
            "  amplitude:\n"
            "    boosts: {2: 1.5}\n"
        )
        config = load_config(path)
        assert config.effective_speed_of_sound == pytest.approx(AIR.speed_of_sound_at(30))
        assert config.amplitude.boosts == {2: 1.5}

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == DEFAULT_CONFIG

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("harmonics: 8\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_null_value_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("frequency_ceiling_hz: null\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_numeric_value_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("analysis:\n  speed_of_sound: fast\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_numeric_strings_coerced(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("speed_of_sound: '350'\nharmonic_count: 4.0\n")
        config = load_config(path)
        assert config.speed_of_sound == 350.0
        assert config.harmonic_count == 4

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("analysis: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)
