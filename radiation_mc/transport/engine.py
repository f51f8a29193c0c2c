"""
Radiation-reaction engines for particle-in-cell species.

Integrates:
    - Quantum parameter computation (shared pure functions)
    - Monte Carlo photon emission (discontinuous) and quantum-corrected
      friction (continuous)
    - Macro-photon creation with down-sampling
    - Serial, multi-threaded and numba.prange execution

An engine is called once per macro time step on a contiguous particle
range. It mutates the species in place, may append macro-photons to a
photon species and returns the energy radiated away by this call, which
the caller folds into its own diagnostics.
"""

import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Tuple

from radiation_mc.config import RadiationConfig
from radiation_mc.core.fields import FieldBuffer
from radiation_mc.core.particle import ParticleArray, TAU_NEEDS_DRAW
from radiation_mc.core.random_streams import RandomStream, create_stream
from radiation_mc.physics.constants import Normalization
from radiation_mc.physics.quantum_parameter import update_particle_chi
from radiation_mc.physics.tables import RadiationTables
from radiation_mc.transport.monte_carlo import (ll_friction_range, ll_friction_range_parallel,
                                                mc_emission_range, mc_emission_range_parallel)


def for_range(istart: int, iend: int, chunk_size: int, run_chunk: Callable,
              backend: str = 'serial', n_threads: int = 1) -> list:
    """
    Parallel-for over [istart, iend) in chunks.

    run_chunk(chunk_index, start, stop) is called once per chunk; chunks
    cover disjoint particle ranges. With backend 'threads' chunks run
    concurrently in a thread pool (the kernels release the GIL), otherwise
    they run one after the other in the calling thread.

    Returns:
        List of run_chunk results in chunk order
    """
    chunks = [(k, start, min(start + chunk_size, iend))
              for k, start in enumerate(range(istart, iend, chunk_size))]

    if backend == 'threads' and n_threads > 1 and len(chunks) > 1:
        with ThreadPoolExecutor(max_workers=min(n_threads, len(chunks))) as pool:
            return list(pool.map(lambda chunk: run_chunk(*chunk), chunks))

    return [run_chunk(*chunk) for chunk in chunks]


def _check_call(particles: ParticleArray, fields: FieldBuffer, istart: int,
                iend: Optional[int]) -> int:
    if iend is None:
        iend = particles.n_particles
    particles.check_range(istart, iend)
    fields.check_range(istart, iend)
    return iend


def _table_normalization(config: RadiationConfig, tables: RadiationTables) -> Normalization:
    normalization = tables.normalization
    if not np.isclose(normalization.reference_angular_frequency_SI,
                      config.reference_angular_frequency_SI, rtol=1e-12, atol=0.0):
        raise ValueError(
            f"reference_angular_frequency_SI mismatch: config has "
            f"{config.reference_angular_frequency_SI:.6e} rad/s, tables were built with "
            f"{normalization.reference_angular_frequency_SI:.6e} rad/s; pass "
            f"normalization=Normalization(config.reference_angular_frequency_SI) to the tables")
    return normalization


def create_photons(particles: ParticleArray, photons: ParticleArray, istart: int,
                   event_chi: np.ndarray, event_momentum: np.ndarray,
                   event_count: np.ndarray, photon_sampling: int) -> int:
    """
    Turn recorded emission events into macro-photons.

    Each event of the particle in lane l (particle istart + l) becomes
    photon_sampling macro-photons at the parent position, with the event
    momentum, weight parent_weight / photon_sampling, charge 0, chi set to
    the sampled photon chi and tau = -1 (where the photon species tracks
    them). All photons of the chunk are appended in one locked operation.

    Returns:
        Number of macro-photons appended
    """
    n_events = int(np.sum(event_count))
    if n_events == 0:
        return 0

    lanes = np.repeat(np.arange(event_count.shape[0]), event_count)
    first_slot = np.repeat(np.cumsum(event_count) - event_count, event_count)
    slots = np.arange(n_events) - first_slot
    parents = istart + lanes

    n_photons = n_events * photon_sampling
    values = {
        'position': np.repeat(particles.position[parents], photon_sampling, axis=0),
        'momentum': np.repeat(event_momentum[lanes, slots], photon_sampling, axis=0),
        'weight': np.repeat(particles.weight[parents] / photon_sampling, photon_sampling),
        'charge': 0,
    }
    if photons.has_quantum_parameter:
        values['chi'] = np.repeat(event_chi[lanes, slots], photon_sampling)
    if photons.has_monte_carlo:
        values['tau'] = TAU_NEEDS_DRAW

    photons.append(n_photons, **values)
    return n_photons


class RadiationMonteCarlo:
    """
    Monte Carlo quantum radiation reaction (nonlinear inverse Compton).

    Handles:
        - Optical depth sampling and sub-stepping per particle
        - Photon emission with momentum-direction-conserving recoil
        - Continuous corrected friction at moderate chi
        - Down-sampled macro-photon creation
        - Quantum parameter update for diagnostics

    Example:
        config = RadiationConfig(dt=0.05, photon_sampling=4)
        tables = RadiationTables.load('radiation_tables.h5')
        model = RadiationMonteCarlo(config, tables)
        energy = model(electrons, fields, photons=photons)
    """

    name = 'monte-carlo'

    def __init__(self, config: RadiationConfig, tables: RadiationTables,
                 stream: Optional[RandomStream] = None, verbose: bool = False):
        """
        Initialize the Monte Carlo engine.

        Parameters:
            config: Validated radiation parameters
            tables: Cross-section tables
            stream: Random stream provider (default from config)
            verbose: Print setup information
        """
        self.config = config
        self.tables = tables
        self.stream = stream if stream is not None else create_stream(config.random_stream,
                                                                      config.seed)
        self.normalization = _table_normalization(config, tables)
        self.n_calls = 0
        self.last_stats = {}

        if verbose:
            print(f"\nRadiation model: {self.name}")
            print(f"  Backend: {config.backend} (chunk size {config.chunk_size})")
            print(f"  Random stream: {self.stream}")
            print(f"  Tables: {tables}")
            print(f"  dt: {config.dt}, max iterations: {config.max_monte_carlo_iterations}")
            print(f"  Photon sampling: {config.photon_sampling}, "
                  f"gamma threshold: {config.photon_gamma_threshold}")

    def __call__(self, particles: ParticleArray, fields: FieldBuffer, istart: int = 0,
                 iend: Optional[int] = None,
                 photons: Optional[ParticleArray] = None) -> float:
        """
        Apply radiation reaction to particles [istart, iend) for one time step.

        Parameters:
            particles: Radiating species (modified in place)
            fields: Field samples aligned with the particles
            istart, iend: Particle index range (default: all particles)
            photons: Photon species receiving macro-photons (None: no creation,
                the photon energy goes to the returned diagnostic)

        Returns:
            Energy radiated by this call and not carried by macro-photons
            [m_e c^2, summed over weights]
        """
        iend = _check_call(particles, fields, istart, iend)
        config = self.config

        make_photons = photons is not None
        if make_photons and photons.n_dimensions != particles.n_dimensions:
            raise ValueError(f"Photon species has {photons.n_dimensions} position components, "
                             f"radiating species has {particles.n_dimensions}")

        call_index = self.n_calls
        self.n_calls += 1

        tables = self.tables.kernel_arrays()
        one_over_mass_square = 1.0 / particles.mass**2
        inv_norm_E_schwinger = self.normalization.inv_norm_E_Schwinger
        capacity = config.max_monte_carlo_iterations if make_photons else 0
        kernel = mc_emission_range_parallel if config.backend == 'vector' else mc_emission_range

        def run_chunk(chunk_index: int, start: int, stop: int) -> Tuple[float, int, int]:
            n_lanes = stop - start
            seed = self.stream.launch_seed(call_index, chunk_index)
            state = self.stream.lane_states(start, stop, seed)

            event_chi = np.zeros((n_lanes, capacity))
            event_momentum = np.zeros((n_lanes, capacity, 3))
            event_count = np.zeros(n_lanes, dtype=np.int64)
            capped = np.zeros(n_lanes, dtype=np.bool_)

            energy = kernel(start, stop,
                            particles.momentum, particles.weight, particles.charge,
                            particles.tau, fields.E, fields.B, fields.ipart_ref,
                            one_over_mass_square, inv_norm_E_schwinger,
                            config.dt, config.max_monte_carlo_iterations, config.epsilon_tau,
                            *tables,
                            self.stream.kind, state, self.stream.values, seed,
                            make_photons, config.photon_gamma_threshold,
                            event_chi, event_momentum, event_count, capped)

            n_photons = 0
            if make_photons:
                n_photons = create_photons(particles, photons, start, event_chi,
                                           event_momentum, event_count,
                                           config.photon_sampling)

            return energy, n_photons, int(np.sum(capped))

        results = for_range(istart, iend, config.chunk_size, run_chunk,
                            config.backend, config.n_threads)

        radiated_energy = particles.mass * sum(r[0] for r in results)

        # Diagnostic chi, never used for decisions inside the step
        if particles.has_quantum_parameter:
            update_particle_chi(particles, fields, istart, iend, inv_norm_E_schwinger)

        n_photons = sum(r[1] for r in results)
        self.last_stats = {
            'n_particles': iend - istart,
            'n_photons': n_photons,
            'n_photon_events': n_photons // config.photon_sampling,
            'n_capped': sum(r[2] for r in results),
            'radiated_energy': radiated_energy,
        }
        return radiated_energy

    def run_steps(self, particles: ParticleArray, fields: FieldBuffer, n_steps: int,
                  photons: Optional[ParticleArray] = None, verbose: bool = False) -> np.ndarray:
        """
        Apply n_steps radiation steps in fixed fields (no particle push).

        Useful for studying radiative cooling of a beam in a static field.

        Returns:
            Radiated energy per step
        """
        return _run_steps(self, particles, fields, n_steps, photons, verbose)

    def __repr__(self) -> str:
        return f"RadiationMonteCarlo(backend={self.config.backend}, stream={self.stream})"


class CorrectedLandauLifshitz:
    """
    Continuous radiation reaction with the quantum-corrected (Ridgers) power.

    Every particle with chi above the continuous threshold loses the
    corrected radiated energy over dt through a friction along its
    momentum. No photons are created.
    """

    name = 'corrected-landau-lifshitz'

    def __init__(self, config: RadiationConfig, tables: RadiationTables, verbose: bool = False):
        self.config = config
        self.tables = tables
        self.normalization = _table_normalization(config, tables)
        self.last_stats = {}

        if verbose:
            print(f"\nRadiation model: {self.name}")
            print(f"  Backend: {config.backend}, dt: {config.dt}")
            print(f"  Continuous threshold: chi > {tables.minimum_chi_continuous():.2e}")

    def __call__(self, particles: ParticleArray, fields: FieldBuffer, istart: int = 0,
                 iend: Optional[int] = None,
                 photons: Optional[ParticleArray] = None) -> float:
        """Apply the friction to particles [istart, iend); photons is ignored."""
        iend = _check_call(particles, fields, istart, iend)
        config = self.config
        kernel = ll_friction_range_parallel if config.backend == 'vector' else ll_friction_range
        inv_norm_E_schwinger = self.normalization.inv_norm_E_Schwinger

        def run_chunk(chunk_index: int, start: int, stop: int) -> float:
            return kernel(start, stop, particles.momentum, particles.weight, particles.charge,
                          fields.E, fields.B, fields.ipart_ref, 1.0 / particles.mass**2,
                          inv_norm_E_schwinger, config.dt,
                          self.normalization.factor_classical_radiated_power,
                          self.tables.minimum_chi_continuous())

        results = for_range(istart, iend, config.chunk_size, run_chunk,
                            config.backend, config.n_threads)
        radiated_energy = particles.mass * sum(results)

        if particles.has_quantum_parameter:
            update_particle_chi(particles, fields, istart, iend, inv_norm_E_schwinger)

        self.last_stats = {'n_particles': iend - istart, 'radiated_energy': radiated_energy}
        return radiated_energy

    def run_steps(self, particles: ParticleArray, fields: FieldBuffer, n_steps: int,
                  photons: Optional[ParticleArray] = None, verbose: bool = False) -> np.ndarray:
        return _run_steps(self, particles, fields, n_steps, photons, verbose)


class NoRadiation:
    """Radiation switched off: only the diagnostic chi is updated."""

    name = 'none'

    def __init__(self, config: RadiationConfig, tables: Optional[RadiationTables] = None,
                 verbose: bool = False):
        self.config = config
        self.normalization = _table_normalization(config, tables) if tables is not None else \
            Normalization(config.reference_angular_frequency_SI)
        self.last_stats = {}

    def __call__(self, particles: ParticleArray, fields: FieldBuffer, istart: int = 0,
                 iend: Optional[int] = None,
                 photons: Optional[ParticleArray] = None) -> float:
        iend = _check_call(particles, fields, istart, iend)
        if particles.has_quantum_parameter:
            update_particle_chi(particles, fields, istart, iend,
                                self.normalization.inv_norm_E_Schwinger)
        self.last_stats = {'n_particles': iend - istart, 'radiated_energy': 0.0}
        return 0.0

    def run_steps(self, particles: ParticleArray, fields: FieldBuffer, n_steps: int,
                  photons: Optional[ParticleArray] = None, verbose: bool = False) -> np.ndarray:
        return _run_steps(self, particles, fields, n_steps, photons, verbose)


def _run_steps(model, particles: ParticleArray, fields: FieldBuffer, n_steps: int,
               photons: Optional[ParticleArray], verbose: bool) -> np.ndarray:
    from tqdm import tqdm

    energies = np.zeros(n_steps)
    steps = tqdm(range(n_steps), desc=model.name, disable=not verbose)

    for step in steps:
        energies[step] = model(particles, fields, photons=photons)
        if verbose:
            steps.set_postfix(radiated=f"{energies[:step + 1].sum():.3e}",
                              photons=len(photons) if photons is not None else 0)

    if verbose:
        print(f"\n{model.name} complete!")
        print(f"  Steps: {n_steps}")
        print(f"  Radiated energy: {energies.sum():.4e} m_e c^2")
        print(f"  Species: {particles}")
        if photons is not None:
            print(f"  Photons: {photons}")

    return energies
