"""
Numba kernels for quantum radiation reaction.

Monte Carlo model (nonlinear inverse Compton scattering):
    Each particle runs a bounded sub-stepping loop inside the macro step.
    A stochastic optical depth tau, drawn from an exponential law, is
    consumed at the photon production rate; when it reaches zero a photon
    is emitted and the particle recoils. Particles with moderate chi
    follow a continuous quantum-corrected friction instead.

Corrected Landau-Lifshitz model:
    Continuous friction only, applied over the whole macro step.

Emission events are written to per-particle pre-reserved slots (one per
Monte Carlo iteration), so particles never share writable state and the
same per-particle code runs in every backend. Macro-photons are created
from the recorded events on the Python side after the kernel returns.

References:
    - Lobet, PhD thesis, Universite de Bordeaux (2015)
    - Niel et al., Phys. Rev. E 97, 043209 (2018)
"""

import numpy as np
import numba

from radiation_mc.core.random_streams import HOST, draw_uniform
from radiation_mc.physics.quantum_parameter import lorentz_factor, compute_particle_chi
from radiation_mc.physics.tables import (corrected_radiated_energy, photon_production_yield,
                                         sample_photon_chi)


# ============================================================================
# Photon emission
# ============================================================================

@numba.njit(fastmath=True, cache=True, nogil=True)
def photon_emission(i: int, lane: int, particle_chi: float, particle_gamma: float,
                    momentum: np.ndarray, weight: np.ndarray, random_number: float,
                    min_photon_chi: np.ndarray, xi: np.ndarray,
                    xi_log10_min_chi: float, xi_inv_delta: float,
                    make_photons: bool, photon_gamma_threshold: float,
                    event_chi: np.ndarray, event_momentum: np.ndarray,
                    event_count: np.ndarray) -> float:
    """
    Emit one photon from particle i and apply the recoil.

    The photon chi is sampled from the cumulative table, the photon energy
    is gammaph = photon_chi / chi * (gamma - 1), and the parent momentum is
    reduced along its own direction by gammaph (momentum-direction
    conserving recoil, not exact energy-momentum balance).

    If make_photons is set and gammaph >= photon_gamma_threshold, an
    emission event (photon chi, photon momentum) is written to the lane's
    next slot and 0 is returned; the caller turns events into macro-photons.
    Otherwise the photon energy weight * (gamma - gamma_after) is returned
    for the radiated-energy diagnostic.

    Parameters:
        i: Particle index
        lane: Slot row of this particle in the event arrays
        particle_chi: Parent quantum parameter
        particle_gamma: Parent Lorentz factor before emission
        momentum: Particle momenta (n, 3), modified in place
        weight: Particle weights
        random_number: Uniform sample in [0, 1)
        min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta: Photon chi tables
        make_photons: A photon species receives macro-photons
        photon_gamma_threshold: Minimum gammaph for macro-photon creation
        event_chi, event_momentum, event_count: Event slots

    Returns:
        Radiated energy not carried by macro-photons [m c^2 x weight]
    """
    photon_chi = sample_photon_chi(particle_chi, random_number, min_photon_chi, xi,
                                   xi_log10_min_chi, xi_inv_delta)

    gammaph = photon_chi / particle_chi * (particle_gamma - 1.0)

    # Recoil along the particle direction
    recoil = gammaph / np.sqrt(particle_gamma*particle_gamma - 1.0)
    momentum[i, 0] -= momentum[i, 0]*recoil
    momentum[i, 1] -= momentum[i, 1]*recoil
    momentum[i, 2] -= momentum[i, 2]*recoil

    px = momentum[i, 0]
    py = momentum[i, 1]
    pz = momentum[i, 2]

    if make_photons and gammaph >= photon_gamma_threshold:
        inv_norm_p = 1.0 / np.sqrt(px*px + py*py + pz*pz)

        k = event_count[lane]
        event_chi[lane, k] = photon_chi
        event_momentum[lane, k, 0] = gammaph*px*inv_norm_p
        event_momentum[lane, k, 1] = gammaph*py*inv_norm_p
        event_momentum[lane, k, 2] = gammaph*pz*inv_norm_p
        event_count[lane] = k + 1
        return 0.0

    return weight[i]*(particle_gamma - lorentz_factor(px, py, pz))


# ============================================================================
# Monte Carlo state machine (one particle)
# ============================================================================

@numba.njit(fastmath=True, cache=True, nogil=True)
def mc_particle_step(i: int, lane: int,
                     momentum: np.ndarray, weight: np.ndarray, charge: np.ndarray,
                     tau: np.ndarray, E: np.ndarray, B: np.ndarray, ipart_ref: int,
                     one_over_mass_square: float, inv_norm_E_schwinger: float,
                     dt: float, max_iterations: int, epsilon_tau: float,
                     integfochi: np.ndarray, log10_min_chi: float, inv_delta: float,
                     min_photon_chi: np.ndarray, xi: np.ndarray,
                     xi_log10_min_chi: float, xi_inv_delta: float,
                     factor_dNph_dt: float, factor_classical_radiated_power: float,
                     chi_continuous: float, chi_discontinuous: float,
                     stream_kind: int, stream_state: np.ndarray, stream_values: np.ndarray,
                     make_photons: bool, photon_gamma_threshold: float,
                     event_chi: np.ndarray, event_momentum: np.ndarray,
                     event_count: np.ndarray, capped: np.ndarray) -> float:
    """
    Advance the radiation Monte Carlo process of particle i over dt.

    Per sub-step:
        1. gamma == 1 (no kinetic energy): stop.
        2. chi from the local field sample.
        3. chi above the discontinuous threshold and no emission pending:
           draw tau = -ln(1 - U) until tau > epsilon_tau.
        4. Emission pending: consume tau at the production rate over
           min(tau / rate, remaining time); emit when tau reaches epsilon_tau
           and reset tau to -1.
        5. Else if chi is between the thresholds: continuous friction over
           the remaining time, end of step.
        6. Else: no radiation, end of step.

    Returns:
        Radiated energy of this particle not carried by macro-photons
    """
    charge_over_mass_square = charge[i]*one_over_mass_square
    j = i - ipart_ref

    radiated_energy = 0.0
    local_it_time = 0.0
    mc_it_nb = 0

    while local_it_time < dt and mc_it_nb < max_iterations:
        px = momentum[i, 0]
        py = momentum[i, 1]
        pz = momentum[i, 2]
        gamma = lorentz_factor(px, py, pz)

        # No Monte Carlo for particles at rest
        if gamma == 1.0:
            break

        particle_chi = compute_particle_chi(charge_over_mass_square, px, py, pz, gamma,
                                            E[j, 0], E[j, 1], E[j, 2],
                                            B[j, 0], B[j, 1], B[j, 2],
                                            inv_norm_E_schwinger)

        # New emission: draw the final optical depth
        if particle_chi > chi_discontinuous and tau[i] <= epsilon_tau:
            while tau[i] <= epsilon_tau:
                tau[i] = -np.log(1.0 - draw_uniform(stream_kind, stream_state,
                                                    stream_values, lane))

        # Discontinuous emission in progress
        if tau[i] > epsilon_tau:
            rate = photon_production_yield(particle_chi, gamma, integfochi,
                                           log10_min_chi, inv_delta, factor_dNph_dt)

            # Synchronize with the end of the macro step
            emission_time = dt - local_it_time
            if rate > 0.0 and tau[i] / rate < emission_time:
                emission_time = tau[i] / rate

            tau[i] -= rate*emission_time

            if tau[i] <= epsilon_tau:
                random_number = draw_uniform(stream_kind, stream_state, stream_values, lane)
                radiated_energy += photon_emission(i, lane, particle_chi, gamma,
                                                   momentum, weight, random_number,
                                                   min_photon_chi, xi,
                                                   xi_log10_min_chi, xi_inv_delta,
                                                   make_photons, photon_gamma_threshold,
                                                   event_chi, event_momentum, event_count)
                # Next use needs a fresh draw
                tau[i] = -1.0

            mc_it_nb += 1
            local_it_time += emission_time

        # Continuous emission
        elif particle_chi > chi_continuous and gamma > 1.0:
            emission_time = dt - local_it_time

            cont_rad_energy = corrected_radiated_energy(particle_chi, emission_time,
                                                        factor_classical_radiated_power)

            temp = cont_rad_energy*gamma/(gamma*gamma - 1.0)
            momentum[i, 0] -= temp*px
            momentum[i, 1] -= temp*py
            momentum[i, 2] -= temp*pz

            radiated_energy += weight[i]*(gamma - lorentz_factor(momentum[i, 0],
                                                                 momentum[i, 1],
                                                                 momentum[i, 2]))
            local_it_time = dt

        # chi too low: no emission
        else:
            local_it_time = dt

    if local_it_time < dt and mc_it_nb >= max_iterations:
        capped[lane] = True

    if tau[i] <= epsilon_tau:
        tau[i] = -1.0

    return radiated_energy


@numba.njit(fastmath=True, cache=True, nogil=True)
def ll_particle_step(i: int, momentum: np.ndarray, weight: np.ndarray, charge: np.ndarray,
                     E: np.ndarray, B: np.ndarray, ipart_ref: int,
                     one_over_mass_square: float, inv_norm_E_schwinger: float, dt: float,
                     factor_classical_radiated_power: float, chi_continuous: float) -> float:
    """Corrected Landau-Lifshitz friction for particle i over dt."""
    j = i - ipart_ref
    px = momentum[i, 0]
    py = momentum[i, 1]
    pz = momentum[i, 2]
    gamma = lorentz_factor(px, py, pz)

    if gamma == 1.0:
        return 0.0

    particle_chi = compute_particle_chi(charge[i]*one_over_mass_square, px, py, pz, gamma,
                                        E[j, 0], E[j, 1], E[j, 2],
                                        B[j, 0], B[j, 1], B[j, 2],
                                        inv_norm_E_schwinger)
    if particle_chi <= chi_continuous:
        return 0.0

    rad_energy = corrected_radiated_energy(particle_chi, dt, factor_classical_radiated_power)
    temp = rad_energy*gamma/(gamma*gamma - 1.0)
    momentum[i, 0] -= temp*px
    momentum[i, 1] -= temp*py
    momentum[i, 2] -= temp*pz

    return weight[i]*(gamma - lorentz_factor(momentum[i, 0], momentum[i, 1], momentum[i, 2]))


# ============================================================================
# Range launchers
# ============================================================================

@numba.njit(fastmath=True, cache=True, nogil=True)
def mc_emission_range(istart: int, iend: int,
                      momentum, weight, charge, tau, E, B, ipart_ref,
                      one_over_mass_square, inv_norm_E_schwinger,
                      dt, max_iterations, epsilon_tau,
                      integfochi, log10_min_chi, inv_delta,
                      min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta,
                      factor_dNph_dt, factor_classical_radiated_power,
                      chi_continuous, chi_discontinuous,
                      stream_kind, stream_state, stream_values, host_seed,
                      make_photons, photon_gamma_threshold,
                      event_chi, event_momentum, event_count, capped) -> float:
    """
    Monte Carlo radiation for particles [istart, iend) in the calling thread.

    Lane l of the stream state and event arrays belongs to particle istart + l.
    """
    if stream_kind == HOST:
        np.random.seed(host_seed)

    radiated_energy = 0.0
    for i in range(istart, iend):
        radiated_energy += mc_particle_step(
            i, i - istart, momentum, weight, charge, tau, E, B, ipart_ref,
            one_over_mass_square, inv_norm_E_schwinger, dt, max_iterations, epsilon_tau,
            integfochi, log10_min_chi, inv_delta,
            min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta,
            factor_dNph_dt, factor_classical_radiated_power,
            chi_continuous, chi_discontinuous,
            stream_kind, stream_state, stream_values,
            make_photons, photon_gamma_threshold,
            event_chi, event_momentum, event_count, capped)
    return radiated_energy


@numba.njit(parallel=True, fastmath=True, cache=True)
def mc_emission_range_parallel(istart: int, iend: int,
                               momentum, weight, charge, tau, E, B, ipart_ref,
                               one_over_mass_square, inv_norm_E_schwinger,
                               dt, max_iterations, epsilon_tau,
                               integfochi, log10_min_chi, inv_delta,
                               min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta,
                               factor_dNph_dt, factor_classical_radiated_power,
                               chi_continuous, chi_discontinuous,
                               stream_kind, stream_state, stream_values, host_seed,
                               make_photons, photon_gamma_threshold,
                               event_chi, event_momentum, event_count, capped) -> float:
    """
    Same as mc_emission_range with numba.prange over particles.

    host_seed is ignored: prange workers use their own generator states.
    """
    radiated_energy = 0.0
    for i in numba.prange(istart, iend):
        radiated_energy += mc_particle_step(
            i, i - istart, momentum, weight, charge, tau, E, B, ipart_ref,
            one_over_mass_square, inv_norm_E_schwinger, dt, max_iterations, epsilon_tau,
            integfochi, log10_min_chi, inv_delta,
            min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta,
            factor_dNph_dt, factor_classical_radiated_power,
            chi_continuous, chi_discontinuous,
            stream_kind, stream_state, stream_values,
            make_photons, photon_gamma_threshold,
            event_chi, event_momentum, event_count, capped)
    return radiated_energy


@numba.njit(fastmath=True, cache=True, nogil=True)
def ll_friction_range(istart: int, iend: int, momentum, weight, charge, E, B, ipart_ref,
                      one_over_mass_square, inv_norm_E_schwinger, dt,
                      factor_classical_radiated_power, chi_continuous) -> float:
    """Corrected Landau-Lifshitz friction for particles [istart, iend)."""
    radiated_energy = 0.0
    for i in range(istart, iend):
        radiated_energy += ll_particle_step(i, momentum, weight, charge, E, B, ipart_ref,
                                            one_over_mass_square, inv_norm_E_schwinger, dt,
                                            factor_classical_radiated_power, chi_continuous)
    return radiated_energy


@numba.njit(parallel=True, fastmath=True, cache=True)
def ll_friction_range_parallel(istart: int, iend: int, momentum, weight, charge, E, B,
                               ipart_ref, one_over_mass_square, inv_norm_E_schwinger, dt,
                               factor_classical_radiated_power, chi_continuous) -> float:
    radiated_energy = 0.0
    for i in numba.prange(istart, iend):
        radiated_energy += ll_particle_step(i, momentum, weight, charge, E, B, ipart_ref,
                                            one_over_mass_square, inv_norm_E_schwinger, dt,
                                            factor_classical_radiated_power, chi_continuous)
    return radiated_energy
