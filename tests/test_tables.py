"""Radiation tables: queries, clamping, sampling statistics and I/O."""

import numpy as np
import pytest

from radiation_mc.physics.constants import Normalization
from radiation_mc.physics.tables import RadiationTables, ridgers_fit


def log_fraction(tables, chi, photon_chi):
    """Position of photon_chi inside [minimum_photon_chi(chi), chi] in log10, in [0, 1]."""
    low = np.log10(tables.minimum_photon_chi(chi))
    return (np.log10(photon_chi) - low) / (np.log10(chi) - low)


class TestConstruction:

    def test_declared_dimensions(self, tables):
        assert tables.size_particle_chi == 6
        assert tables.xi_size_particle_chi == 6
        assert tables.size_photon_chi == 11
        assert tables.minimum_chi_continuous() == 1e-3
        assert tables.minimum_chi_discontinuous() == 1e-2

    def test_arrays_are_read_only(self, tables):
        with pytest.raises(ValueError):
            tables.xi[0, 0] = 0.5
        with pytest.raises(ValueError):
            tables.integfochi[0] = 2.0

    def test_constructor_copies_input(self, unit_normalization):
        integfochi = np.ones(4)
        tables = RadiationTables(integfochi, 1e-2, 1e1, np.full(4, 1e-5),
                                 np.tile(np.linspace(0, 1, 5), (4, 1)),
                                 normalization=unit_normalization)
        integfochi[0] = 100.0
        assert tables.integfochi[0] == 1.0

    def test_rejects_decreasing_row(self):
        xi = np.tile(np.linspace(0, 1, 5), (4, 1))
        xi[2, 3] = 0.1
        with pytest.raises(ValueError, match="non-decreasing"):
            RadiationTables(np.ones(4), 1e-2, 1e1, np.full(4, 1e-5), xi)

    def test_rejects_row_count_mismatch(self):
        with pytest.raises(ValueError, match="rows"):
            RadiationTables(np.ones(4), 1e-2, 1e1, np.full(3, 1e-5),
                            np.tile(np.linspace(0, 1, 5), (4, 1)))

    def test_rejects_reversed_thresholds(self, make_tables):
        with pytest.raises(ValueError, match="minimum_chi_continuous"):
            make_tables(chi_continuous=1e-1, chi_discontinuous=1e-2)

    def test_rejects_non_positive_photon_chi(self):
        with pytest.raises(ValueError, match="strictly positive"):
            RadiationTables(np.ones(4), 1e-2, 1e1, np.array([1e-5, 0.0, 1e-5, 1e-5]),
                            np.tile(np.linspace(0, 1, 5), (4, 1)))

    def test_rejects_invalid_domain(self):
        with pytest.raises(ValueError, match="domain"):
            RadiationTables(np.ones(4), 1e1, 1e-2, np.full(4, 1e-5),
                            np.tile(np.linspace(0, 1, 5), (4, 1)))

    def test_kernel_arrays_order(self, tables):
        arrays = tables.kernel_arrays()
        assert len(arrays) == 11
        assert arrays[0] is tables.integfochi
        assert arrays[4] is tables.xi
        assert arrays[9] == tables.minimum_chi_continuous()
        assert arrays[10] == tables.minimum_chi_discontinuous()


class TestNormalization:

    def test_one_micron_values(self):
        norm = Normalization()
        # hbar omega_r / (m_e c^2) for lambda = 1 micron
        assert norm.normalized_compton_wavelength == pytest.approx(2.4263e-6, rel=1e-4)
        assert norm.norm_E_Schwinger * norm.inv_norm_E_Schwinger == pytest.approx(1.0)
        assert norm.factor_classical_radiated_power == pytest.approx(
            2.0 / 3.0 * 7.2973525693e-3 / norm.normalized_compton_wavelength)

    def test_rejects_non_positive_frequency(self):
        with pytest.raises(ValueError):
            Normalization(0.0)

    def test_unit_chi_scale_keeps_rate_prefactors(self, unit_normalization):
        reference = Normalization()
        assert unit_normalization.inv_norm_E_Schwinger == 1.0
        assert unit_normalization.factor_dNph_dt == reference.factor_dNph_dt
        assert unit_normalization.factor_classical_radiated_power == \
            reference.factor_classical_radiated_power


class TestProductionYield:

    def test_constant_integral(self, tables):
        factor = tables.normalization.factor_dNph_dt
        assert tables.photon_production_yield(1.0, 1000.0) == pytest.approx(factor / 1000.0)
        assert tables.photon_production_yield(0.1, 500.0) == pytest.approx(factor * 0.1 / 500.0)

    def test_interpolates_in_log_chi(self, unit_normalization):
        tables = RadiationTables(np.arange(1.0, 7.0), 1e-3, 1e2, np.full(6, 1e-6),
                                 np.tile(np.linspace(0, 1, 5), (6, 1)),
                                 normalization=unit_normalization)
        factor = unit_normalization.factor_dNph_dt
        chi = 10.0**-2.5
        assert tables.photon_production_yield(chi, 1.0) == pytest.approx(factor * 1.5 * chi)

    def test_clamps_outside_domain(self, unit_normalization):
        tables = RadiationTables(np.arange(1.0, 7.0), 1e-3, 1e2, np.full(6, 1e-6),
                                 np.tile(np.linspace(0, 1, 5), (6, 1)),
                                 normalization=unit_normalization)
        factor = unit_normalization.factor_dNph_dt
        assert tables.photon_production_yield(1e-5, 1.0) == pytest.approx(factor * 1.0 * 1e-5)
        assert tables.photon_production_yield(1e4, 1.0) == pytest.approx(factor * 6.0 * 1e4)

    def test_zero_chi(self, tables):
        assert tables.photon_production_yield(0.0, 10.0) == 0.0


class TestPhotonChiSampling:

    def test_range_limits(self, tables):
        chi = 1.0
        assert tables.sample_photon_chi(chi, 0.0) == pytest.approx(tables.minimum_photon_chi(chi))
        assert tables.sample_photon_chi(chi, 1.0 - 1e-12) == pytest.approx(chi, rel=1e-9)

    def test_minimum_photon_chi_log_interpolation(self, tables):
        # min_photon_chi = 1e-3 chi on every row, so also between rows
        for chi in (1e-3, 10.0**-1.3, 1.0, 10.0**1.7):
            assert tables.minimum_photon_chi(chi) == pytest.approx(1e-3 * chi, rel=1e-9)

    def test_samples_stay_in_range(self, make_tables):
        tables = make_tables(row_power=3.0)
        for chi in (2e-3, 0.05, 1.0, 30.0, 1e3):
            for u in np.linspace(0.0, 0.999, 17):
                photon_chi = tables.sample_photon_chi(chi, u)
                assert tables.minimum_photon_chi(chi) * (1 - 1e-12) <= photon_chi
                assert photon_chi <= chi * (1 + 1e-12)

    def test_monotonic_in_uniform_sample(self, make_tables):
        tables = make_tables(row_power=2.0)
        samples = [tables.sample_photon_chi(0.3, u) for u in np.linspace(0.0, 0.99, 50)]
        assert np.all(np.diff(samples) >= 0.0)

    def test_inverse_of_cumulative_row(self, make_tables):
        """On a grid node the sampled log fraction is the inverse of the table row."""
        tables = make_tables(row_power=2.0)
        row = tables.xi[3]
        columns = np.linspace(0.0, 1.0, row.size)
        u = (np.arange(200) + 0.5) / 200

        fractions = np.array([log_fraction(tables, 1.0, tables.sample_photon_chi(1.0, x))
                              for x in u])

        assert np.allclose(fractions, np.interp(u, row, columns), atol=1e-9)

    def test_empirical_distribution_matches_table(self, make_tables):
        tables = make_tables(row_power=2.0)
        rng = np.random.default_rng(42)
        u = rng.random(20000)

        fractions = np.array([log_fraction(tables, 1.0, tables.sample_photon_chi(1.0, x))
                              for x in u])

        row = tables.xi[3]
        for k, target in enumerate(row):
            empirical = np.mean(fractions <= k / (row.size - 1) + 1e-12)
            assert empirical == pytest.approx(target, abs=0.015)

    def test_identical_rows_give_same_fraction_between_nodes(self, make_tables):
        tables = make_tables(row_power=2.0)
        chi = 10.0**0.4
        for u in (0.1, 0.5, 0.9):
            assert log_fraction(tables, chi, tables.sample_photon_chi(chi, u)) == \
                pytest.approx(log_fraction(tables, 1.0, tables.sample_photon_chi(1.0, u)),
                              abs=1e-9)


class TestCorrectedRadiatedEnergy:

    def test_ridgers_fit_values(self):
        assert ridgers_fit(0.0) == 1.0
        expected = (1.0 + 4.8 * 2.0 * np.log(2.7) + 2.44)**(-2.0 / 3.0)
        assert ridgers_fit(1.0) == pytest.approx(expected, rel=1e-12)
        assert ridgers_fit(10.0) < ridgers_fit(1.0) < ridgers_fit(0.1) < 1.0

    def test_classical_limit(self, tables):
        factor = tables.normalization.factor_classical_radiated_power
        energy = tables.corrected_radiated_energy(1e-6, 2.0)
        assert energy == pytest.approx(factor * 1e-12 * 2.0, rel=1e-5)

    def test_linear_in_dt(self, tables):
        assert tables.corrected_radiated_energy(0.5, 0.2) == \
            pytest.approx(2.0 * tables.corrected_radiated_energy(0.5, 0.1))


class TestTableIO:

    def test_hdf5_round_trip(self, make_tables, tmp_path):
        tables = make_tables(chi_continuous=2e-3, chi_discontinuous=5e-2, row_power=1.5)
        path = tables.save(tmp_path / "tables.h5")

        loaded = RadiationTables.load(path, normalization=tables.normalization)

        assert np.array_equal(loaded.integfochi, tables.integfochi)
        assert np.array_equal(loaded.min_photon_chi, tables.min_photon_chi)
        assert np.array_equal(loaded.xi, tables.xi)
        assert loaded.min_particle_chi == tables.min_particle_chi
        assert loaded.max_particle_chi == tables.max_particle_chi
        assert loaded.minimum_chi_continuous() == 2e-3
        assert loaded.minimum_chi_discontinuous() == 5e-2

    def test_npz_fallback_and_threshold_override(self, tables, tmp_path):
        tables.save(tmp_path / "tables.npz")

        # No suffix: '.h5' is missing, '.npz' is found
        loaded = RadiationTables.load(tmp_path / "tables", minimum_chi_continuous=5e-3)

        assert np.array_equal(loaded.xi, tables.xi)
        assert loaded.minimum_chi_continuous() == 5e-3
        assert loaded.minimum_chi_discontinuous() == tables.minimum_chi_discontinuous()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RadiationTables.load(tmp_path / "missing.h5")


@pytest.fixture(scope="module")
def synthetic():
    return RadiationTables.synthetic(min_particle_chi=1e-3, max_particle_chi=1e1,
                                     size_particle_chi=9, size_photon_chi=32, n_quad=1000)


class TestSyntheticTables:

    def test_shapes_and_rows(self, synthetic):
        assert synthetic.integfochi.shape == (9,)
        assert synthetic.xi.shape == (9, 32)
        assert np.allclose(synthetic.xi[:, 0], 0.0)
        assert np.allclose(synthetic.xi[:, -1], 1.0)
        assert np.all(np.diff(synthetic.xi, axis=1) >= 0.0)

    def test_photon_chi_below_particle_chi(self, synthetic):
        chis = np.logspace(-3, 1, 9)
        assert np.all(synthetic.min_photon_chi > 0.0)
        assert np.all(synthetic.min_photon_chi < chis)

    def test_classical_photon_yield(self, synthetic):
        """At low chi the photon rate tends to 5 alpha chi / (2 sqrt(3) gamma lambda_c)."""
        assert synthetic.integfochi[0] == pytest.approx(5.0 * np.pi / 3.0, rel=0.05)

    def test_quantum_suppression(self, synthetic):
        assert synthetic.integfochi[-1] < 0.8 * synthetic.integfochi[0]
        assert np.all(np.diff(synthetic.integfochi) < 0.0)
