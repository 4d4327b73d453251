"""
Tests for the offline calibration tool.
"""

import pytest
import yaml

from didgebore.acoustic_model import AcousticModel, estimate_fundamental
from didgebore.calibration import (
    BoreClass,
    CorrectionFactors,
    default_policy,
    load_policy,
    save_policy,
)
from didgebore.calibration_tool import (
    CalibrationSample,
    calibrate_policy,
    fit_end_corrections,
    fit_scale_factor,
    load_samples,
    samples_from_dict,
)
from didgebore.errors import CalibrationError
from didgebore.geometry import parse_geometry


@pytest.fixture
def measured_didge(conical_bore):
    """The instrument the default table was fit on."""
    return CalibrationSample("Didge 1695mm", conical_bore, 65.5)


@pytest.fixture
def synthetic_samples():
    """Two bores 'measured' with end 1.2, mouth 0.6 and no scale."""
    truth = CorrectionFactors(end_correction=1.2, mouth_correction=0.6)
    samples = []
    for name, text in (("flaring", "0 30\n150 90"), ("narrowing", "0 60\n120 30")):
        profile = parse_geometry(text)
        measured = estimate_fundamental(profile, truth).fundamental_frequency
        samples.append(CalibrationSample(name, profile, measured))
    return samples


# ══════════════════════════════════════════════════════════════════════════════
# FITTING
# ══════════════════════════════════════════════════════════════════════════════

class TestFitEndCorrections:
    """Grid search over end and mouth coefficients."""

    def test_recovers_known_factors(self, synthetic_samples):
        fit = fit_end_corrections(synthetic_samples)
        assert fit.end_correction == pytest.approx(1.2)
        assert fit.mouth_correction == pytest.approx(0.6)
        assert fit.rms_relative_error == pytest.approx(0.0, abs=1e-9)
        for sample, predicted in zip(synthetic_samples, fit.predictions):
            assert predicted == pytest.approx(sample.measured_frequency)

    def test_result_stays_on_grid(self, measured_didge):
        """65.5 Hz needs far more end correction than the grid allows."""
        fit = fit_end_corrections([measured_didge])
        assert fit.end_correction == pytest.approx(3.0)
        assert fit.mouth_correction == pytest.approx(3.0)
        assert fit.rms_relative_error > 0.2

    def test_custom_range(self, synthetic_samples):
        fit = fit_end_corrections(synthetic_samples, end_range=(0.5, 1.0),
                                  mouth_range=(0.5, 1.0))
        assert 0.5 <= fit.end_correction <= 1.0
        assert 0.5 <= fit.mouth_correction <= 1.0

    def test_no_samples(self):
        with pytest.raises(CalibrationError):
            fit_end_corrections([])

    def test_bad_step(self, synthetic_samples):
        with pytest.raises(CalibrationError):
            fit_end_corrections(synthetic_samples, step=0.0)


class TestFitScaleFactor:

    def test_single_instrument(self, measured_didge):
        """Reproduces the strongly conical default."""
        scale = fit_scale_factor([measured_didge], CorrectionFactors())
        assert scale == pytest.approx(65.5 / 98.8188, rel=1e-5)
        assert scale == pytest.approx(0.663, abs=1e-3)

    def test_ignores_existing_scale(self, measured_didge):
        a = fit_scale_factor([measured_didge], CorrectionFactors(scale_factor=0.5))
        b = fit_scale_factor([measured_didge], CorrectionFactors())
        assert a == pytest.approx(b)

    def test_no_samples(self):
        with pytest.raises(CalibrationError):
            fit_scale_factor([], CorrectionFactors())


# ══════════════════════════════════════════════════════════════════════════════
# POLICY CALIBRATION
# ══════════════════════════════════════════════════════════════════════════════

class TestCalibratePolicy:

    def test_refits_only_sampled_bands(self, measured_didge):
        base = default_policy()
        policy = calibrate_policy([measured_didge], version="2024.1")
        assert policy.version == "2024.1"
        assert policy.table[BoreClass.STRONGLY_CONICAL].scale_factor == pytest.approx(0.6628)
        assert policy.table[BoreClass.NEAR_CYLINDRICAL] == base.table[BoreClass.NEAR_CYLINDRICAL]
        assert (policy.table[BoreClass.MODERATELY_CONICAL]
                == base.table[BoreClass.MODERATELY_CONICAL])

    def test_base_policy_untouched(self, measured_didge):
        base = default_policy()
        calibrate_policy([measured_didge], base_policy=base)
        assert base.table[BoreClass.STRONGLY_CONICAL].scale_factor == 0.663

    def test_default_version_label(self, measured_didge):
        policy = calibrate_policy([measured_didge])
        assert policy.version == f"{default_policy().version}-recalibrated"

    def test_calibrated_model_hits_measurement(self, measured_didge):
        policy = calibrate_policy([measured_didge])
        result = AcousticModel(policy=policy).analyze(measured_didge.profile)
        assert result.fundamental_frequency == pytest.approx(65.5, abs=0.01)

    def test_fit_end_corrections_per_band(self, synthetic_samples):
        policy = calibrate_policy(synthetic_samples[:1], fit_end=True)
        factors = policy.table[BoreClass.STRONGLY_CONICAL]
        result = AcousticModel(policy=policy).analyze(synthetic_samples[0].profile)
        assert result.fundamental_frequency == pytest.approx(
            synthetic_samples[0].measured_frequency, rel=1e-3)
        assert factors.inharmonicity == default_policy().table[
            BoreClass.STRONGLY_CONICAL].inharmonicity

    def test_no_samples(self):
        with pytest.raises(CalibrationError):
            calibrate_policy([])

    def test_save_and_reload(self, measured_didge, tmp_path):
        policy = calibrate_policy([measured_didge], version="2024.1")
        loaded = load_policy(save_policy(policy, tmp_path / "table.yaml"))
        assert loaded.table == policy.table


# ══════════════════════════════════════════════════════════════════════════════
# MEASUREMENT FILES
# ══════════════════════════════════════════════════════════════════════════════

MEASUREMENTS = {
    'position_unit': 'mm',
    'diameter_unit': 'mm',
    'samples': [
        {
            'name': 'Didge 1695mm',
            'geometry': "0 30\n800 40\n1695 90",
            'measured_frequency': 65.5,
        },
        {
            'name': 'PVC D2',
            'geometry': "0 34\n1171 34",
            'measured_note': 'D2',
        },
    ],
}


class TestMeasurementFiles:

    def test_samples_from_dict(self):
        samples = samples_from_dict(MEASUREMENTS)
        assert [s.name for s in samples] == ['Didge 1695mm', 'PVC D2']
        assert samples[0].profile.physical_length == pytest.approx(1.695)
        assert samples[1].measured_frequency == pytest.approx(73.416, abs=1e-3)

    def test_load_samples(self, tmp_path):
        path = tmp_path / "measurements.yaml"
        path.write_text(yaml.safe_dump(MEASUREMENTS))
        samples = load_samples(path)
        assert len(samples) == 2

    def test_missing_measurement(self):
        with pytest.raises(CalibrationError):
            samples_from_dict({'samples': [{'name': 'x', 'geometry': "0 30\n100 40"}]})

    def test_bad_note(self):
        with pytest.raises(CalibrationError):
            samples_from_dict({'samples': [
                {'name': 'x', 'geometry': "0 30\n100 40", 'measured_note': 'H2'}
            ]})

    def test_no_samples(self):
        with pytest.raises(CalibrationError):
            samples_from_dict({'position_unit': 'mm'})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "measurements.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(CalibrationError):
            load_samples(path)
