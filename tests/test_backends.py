"""Execution backends, model variants and the model factory."""

import numpy as np
import pytest

from radiation_mc.config import RadiationConfig
from radiation_mc.core.fields import FieldBuffer
from radiation_mc.core.particle import ParticleArray
from radiation_mc.core.random_streams import HostStream, IndexLCGStream
from radiation_mc.physics.constants import DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI, Normalization
from radiation_mc.transport.engine import (CorrectedLandauLifshitz, NoRadiation,
                                           RadiationMonteCarlo, for_range)
from radiation_mc.transport.factory import create_radiation_model


BACKENDS = ['serial', 'threads', 'vector']


def population(n, seed=0):
    """Electrons spanning chi ~ 1e-6 .. 30 (no radiation, continuous and stochastic)."""
    rng = np.random.default_rng(seed)
    electrons = ParticleArray(n, name='electron')
    electrons.initialize_beam(momentum=(1.0, 0.0, 0.0))
    electrons.momentum[:, 0] = rng.uniform(1.0, 3000.0, n)
    electrons.weight[:] = rng.uniform(0.5, 2.0, n)

    E = np.zeros((n, 3))
    E[:, 1] = 10.0**rng.uniform(-6.0, -2.0, n)
    return electrons, FieldBuffer(E, np.zeros((n, 3)))


def beam(n, px=1000.0, chi=1.0):
    electrons = ParticleArray(n, name='electron')
    electrons.initialize_beam(momentum=(px, 0.0, 0.0))
    Ey = chi / np.sqrt(1.0 + px**2)
    return electrons, FieldBuffer.uniform(n, E=(0.0, Ey, 0.0))


def sorted_rows(array):
    return array[np.lexsort(array.T[::-1])]


class TestForRange:

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_chunks_cover_range_in_order(self, backend):
        results = for_range(3, 20, 5, lambda k, start, stop: (k, start, stop),
                            backend=backend, n_threads=3)
        assert results == [(0, 3, 8), (1, 8, 13), (2, 13, 18), (3, 18, 20)]

    def test_empty_range(self):
        assert for_range(5, 5, 4, lambda k, start, stop: stop - start) == []


class TestBackends:

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_tau_invariant_and_energy_balance(self, tables, backend):
        electrons, fields = population(600)
        config = RadiationConfig(dt=0.5, backend=backend, chunk_size=64, n_threads=4)
        model = RadiationMonteCarlo(config, tables, stream=HostStream(seed=3))

        for _ in range(4):
            kinetic_before = electrons.kinetic_energy()

            energy = model(electrons, fields)

            tau = electrons.tau
            assert np.all((tau > config.epsilon_tau) | (tau == -1.0))
            # Without a photon species every loss goes to the diagnostic
            assert kinetic_before - electrons.kinetic_energy() == pytest.approx(energy,
                                                                                rel=1e-9)
        assert np.any(tau > 0.0)

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_photon_creation(self, tables, backend):
        electrons, fields = population(600)
        photons = ParticleArray(0, mass=0.0, name='photon')
        config = RadiationConfig(dt=0.5, backend=backend, chunk_size=64, n_threads=4,
                                 photon_sampling=2, photon_gamma_threshold=50.0)
        model = RadiationMonteCarlo(config, tables, stream=HostStream(seed=3))

        for _ in range(3):
            energy = model(electrons, fields, photons=photons)
            tau = electrons.tau
            assert np.all((tau > config.epsilon_tau) | (tau == -1.0))
            assert energy >= 0.0

        assert len(photons) > 0
        assert len(photons) % 2 == 0
        assert np.all(photons.lorentz_factor() >= 50.0)
        assert model.last_stats['n_photons'] == 2 * model.last_stats['n_photon_events']

    def test_threads_match_serial_for_fixed_seed(self, tables):
        results = {}
        for backend in ('serial', 'threads'):
            electrons, fields = population(500, seed=1)
            photons = ParticleArray(0, mass=0.0)
            config = RadiationConfig(dt=1.0, backend=backend, chunk_size=50, n_threads=4)
            model = RadiationMonteCarlo(config, tables, stream=HostStream(seed=9))
            energy = model(electrons, fields, photons=photons)
            results[backend] = (electrons, photons, energy)

        serial, threads = results['serial'], results['threads']
        assert np.array_equal(serial[0].momentum, threads[0].momentum)
        assert np.array_equal(serial[0].tau, threads[0].tau)
        assert serial[2] == pytest.approx(threads[2], rel=1e-12)
        # Photons of different chunks may be appended in any order
        assert np.array_equal(sorted_rows(serial[1].momentum), sorted_rows(threads[1].momentum))

    def test_lcg_stream_matches_across_serial_and_vector(self, tables):
        momenta = []
        for backend in ('serial', 'vector'):
            electrons, fields = population(300, seed=2)
            config = RadiationConfig(dt=1.0, backend=backend, chunk_size=100)
            RadiationMonteCarlo(config, tables, stream=IndexLCGStream(seed=4))(electrons, fields)
            momenta.append(electrons.momentum.copy())

        assert np.allclose(momenta[0], momenta[1], rtol=1e-9)

    def test_lcg_stream_independent_of_chunk_size(self, tables):
        momenta = []
        for chunk_size in (100, 50):
            electrons, fields = population(300, seed=2)
            config = RadiationConfig(dt=1.0, chunk_size=chunk_size)
            RadiationMonteCarlo(config, tables, stream=IndexLCGStream(seed=4))(electrons, fields)
            momenta.append(electrons.momentum.copy())

        assert np.array_equal(momenta[0], momenta[1])

    def test_lcg_stream_is_reproducible(self, tables):
        momenta = []
        for _ in range(2):
            electrons, fields = population(200, seed=2)
            model = RadiationMonteCarlo(RadiationConfig(dt=1.0), tables,
                                        stream=IndexLCGStream(seed=4))
            model(electrons, fields)
            model(electrons, fields)
            momenta.append(electrons.momentum.copy())

        assert np.array_equal(momenta[0], momenta[1])

    @pytest.mark.parametrize("backend", ['threads', 'vector'])
    def test_radiated_energy_comparable_to_serial(self, tables, backend):
        """Same physics, independent random numbers: mean energy loss agrees statistically."""
        rate = tables.photon_production_yield(1.0, np.sqrt(1.0 + 1000.0**2))
        losses = {}
        for name, seed in (('serial', 10), (backend, 20)):
            electrons, fields = beam(10000)
            config = RadiationConfig(dt=2.0 / rate, backend=name, chunk_size=1000, n_threads=4)
            model = RadiationMonteCarlo(config, tables, stream=HostStream(seed=seed))
            losses[name] = model(electrons, fields) / len(electrons)

        assert losses['serial'] > 0.0
        assert losses[backend] == pytest.approx(losses['serial'], rel=0.1)


class TestModelVariants:

    @pytest.mark.parametrize("backend", BACKENDS)
    def test_corrected_landau_lifshitz(self, tables, backend):
        electrons, fields = beam(8, chi=1.0)
        photons = ParticleArray(0, mass=0.0)
        gamma0 = np.sqrt(1.0 + 1000.0**2)
        model = CorrectedLandauLifshitz(RadiationConfig(dt=0.01, backend=backend,
                                                        chunk_size=3), tables)

        energy = model(electrons, fields, photons=photons)

        gamma1 = electrons.lorentz_factor()
        assert len(photons) == 0
        assert np.all(gamma1 == gamma1[0])
        assert gamma0 - gamma1[0] == pytest.approx(tables.corrected_radiated_energy(1.0, 0.01),
                                                   rel=1e-6)
        assert energy == pytest.approx(8 * (gamma0 - gamma1[0]), rel=1e-9)

    def test_corrected_landau_lifshitz_below_threshold(self, tables):
        electrons, fields = beam(2, chi=5e-4)
        model = CorrectedLandauLifshitz(RadiationConfig(dt=1.0), tables)
        assert model(electrons, fields) == 0.0
        assert np.all(electrons.momentum[:, 0] == 1000.0)

    def test_no_radiation_updates_chi_only(self, tables):
        electrons, fields = beam(4, chi=2.0)
        model = NoRadiation(RadiationConfig(), tables)

        assert model(electrons, fields) == 0.0
        assert np.all(electrons.momentum[:, 0] == 1000.0)
        assert np.allclose(electrons.chi, 2.0, rtol=1e-9)

    def test_species_mass_scales_energy(self, tables):
        """Momenta are in units of the species mass, energies in m_e c^2."""
        energies = []
        for mass in (1.0, 3.0):
            electrons, fields = beam(1, chi=5e-3)
            electrons.mass = mass
            fields = FieldBuffer.uniform(1, E=(0.0, fields.E[0, 1] * mass**2, 0.0))
            energies.append(CorrectedLandauLifshitz(RadiationConfig(dt=0.1), tables)(
                electrons, fields))
        assert energies[1] == pytest.approx(3.0 * energies[0], rel=1e-9)

    def test_run_steps(self, tables):
        electrons, fields = beam(50, chi=1.0)
        kinetic_before = electrons.kinetic_energy()
        model = RadiationMonteCarlo(RadiationConfig(dt=0.5), tables, stream=HostStream(seed=1))

        energies = model.run_steps(electrons, fields, n_steps=5)

        assert energies.shape == (5,)
        assert model.n_calls == 5
        assert kinetic_before - electrons.kinetic_energy() == pytest.approx(energies.sum(),
                                                                            rel=1e-9)


class TestFactory:

    def test_selects_configured_variant(self, tables):
        assert isinstance(create_radiation_model(RadiationConfig(), tables),
                          RadiationMonteCarlo)
        assert isinstance(create_radiation_model(
            RadiationConfig(model='corrected-landau-lifshitz'), tables), CorrectedLandauLifshitz)
        assert isinstance(create_radiation_model(RadiationConfig(model='none')), NoRadiation)

    def test_uses_given_stream(self, tables):
        stream = IndexLCGStream(seed=2)
        model = create_radiation_model(RadiationConfig(), tables, stream=stream)
        assert model.stream is stream

    @pytest.mark.parametrize("model", ['monte-carlo', 'corrected-landau-lifshitz', 'none'])
    def test_rejects_tables_with_other_normalization(self, tables, model):
        config = RadiationConfig(model=model,
                                 reference_angular_frequency_SI=2*DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI)
        with pytest.raises(ValueError, match="reference_angular_frequency_SI"):
            create_radiation_model(config, tables)

    def test_uses_configured_normalization(self, make_tables):
        omega = 2*DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI
        tables = make_tables(normalization=Normalization(omega))
        config = RadiationConfig(reference_angular_frequency_SI=omega)
        model = create_radiation_model(config, tables)
        assert model.normalization.reference_angular_frequency_SI == omega
        assert model.normalization.factor_dNph_dt == Normalization(omega).factor_dNph_dt
        assert NoRadiation(config).normalization.reference_angular_frequency_SI == omega

    def test_needs_tables(self):
        with pytest.raises(ValueError, match="tables"):
            create_radiation_model(RadiationConfig(model='monte-carlo'))

    def test_unknown_model(self, tables):
        config = RadiationConfig()
        config.model = 'landau-lifshitz'
        with pytest.raises(ValueError, match="Unknown radiation model"):
            create_radiation_model(config, tables)
