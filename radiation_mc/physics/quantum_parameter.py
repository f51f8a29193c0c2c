"""
Lorentz-invariant quantum parameter (chi) of charged particles.

Shared by every radiation-reaction model: the Monte Carlo emission loop,
the continuous corrected Landau-Lifshitz friction and the diagnostic
finalize pass that stores chi after each step.

    chi = |q/m^2| / E_S * sqrt( |(E.p)^2 - |gamma E + p x B|^2| )

with p in m_e c, E and B in code units and E_S the normalized Schwinger
field.
"""

import numpy as np
import numba


@numba.njit(fastmath=True, cache=True, nogil=True)
def lorentz_factor(px: float, py: float, pz: float) -> float:
    """Lorentz factor sqrt(1 + p^2) of a massive particle (p in m c)."""
    return np.sqrt(1.0 + px*px + py*py + pz*pz)


@numba.njit(fastmath=True, cache=True, nogil=True)
def compute_particle_chi(charge_over_mass_square: float,
                         px: float, py: float, pz: float, gamma: float,
                         Ex: float, Ey: float, Ez: float,
                         Bx: float, By: float, Bz: float,
                         inv_norm_E_schwinger: float) -> float:
    """
    Quantum parameter of one particle in a local field sample.

    Parameters:
        charge_over_mass_square: Charge state / mass^2 (electron units)
        px, py, pz: Momentum [m_e c]
        gamma: Lorentz factor matching the momentum
        Ex, Ey, Ez: Electric field sample [code units]
        Bx, By, Bz: Magnetic field sample [code units]
        inv_norm_E_schwinger: 1 / normalized Schwinger field

    Returns:
        chi >= 0
    """
    e_dot_p = Ex*px + Ey*py + Ez*pz

    # gamma E + p x B
    fx = gamma*Ex - By*pz + Bz*py
    fy = gamma*Ey - Bz*px + Bx*pz
    fz = gamma*Ez - Bx*py + By*px

    # abs() keeps the root real when roundoff makes the difference negative (gamma -> 1)
    return inv_norm_E_schwinger * np.abs(charge_over_mass_square) * \
        np.sqrt(np.abs(e_dot_p*e_dot_p - (fx*fx + fy*fy + fz*fz)))


@numba.njit(fastmath=True, cache=True, nogil=True)
def _update_chi_range(momentum: np.ndarray, charge: np.ndarray, chi: np.ndarray,
                      E: np.ndarray, B: np.ndarray, one_over_mass_square: float,
                      inv_norm_E_schwinger: float, istart: int, iend: int,
                      ipart_ref: int):
    for i in range(istart, iend):
        j = i - ipart_ref
        px = momentum[i, 0]
        py = momentum[i, 1]
        pz = momentum[i, 2]
        gamma = lorentz_factor(px, py, pz)
        chi[i] = compute_particle_chi(charge[i] * one_over_mass_square,
                                      px, py, pz, gamma,
                                      E[j, 0], E[j, 1], E[j, 2],
                                      B[j, 0], B[j, 1], B[j, 2],
                                      inv_norm_E_schwinger)


def update_particle_chi(particles, fields, istart: int, iend: int,
                        inv_norm_E_schwinger: float):
    """
    Recompute and store chi for particles [istart, iend).

    Diagnostic only: the radiation models never read the stored value to
    make decisions, they always use the freshly computed local chi.

    Parameters:
        particles: ParticleArray
        fields: FieldBuffer aligned with the particles (honours ipart_ref)
        istart, iend: Particle index range
        inv_norm_E_schwinger: 1 / normalized Schwinger field
    """
    if iend <= istart:
        return
    _update_chi_range(particles.momentum, particles.charge, particles.chi,
                      fields.E, fields.B, 1.0 / particles.mass**2,
                      inv_norm_E_schwinger, istart, iend, fields.ipart_ref)


def particle_chi_array(momentum: np.ndarray, charge: np.ndarray, E: np.ndarray,
                       B: np.ndarray, mass: float, inv_norm_E_schwinger: float) -> np.ndarray:
    """
    Vectorized chi for whole arrays (NumPy, no JIT).

    Convenient for setting up initial conditions and for checks; the
    kernels use compute_particle_chi.
    """
    momentum = np.atleast_2d(np.asarray(momentum, dtype=np.float64))
    E = np.atleast_2d(np.asarray(E, dtype=np.float64))
    B = np.atleast_2d(np.asarray(B, dtype=np.float64))
    charge = np.asarray(charge, dtype=np.float64)

    gamma = np.sqrt(1.0 + np.sum(momentum**2, axis=1))
    e_dot_p = np.sum(E * momentum, axis=1)
    f = gamma[:, None] * E + np.cross(momentum, B)

    return inv_norm_E_schwinger * np.abs(charge / mass**2) * \
        np.sqrt(np.abs(e_dot_p**2 - np.sum(f**2, axis=1)))
