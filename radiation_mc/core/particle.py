"""
Particle state management using per-attribute NumPy arrays.

Each attribute lives in its own contiguous array (Structure of Arrays) so
the kernels can index them directly and the container can grow when new
particles (macro-photons) are appended.
"""

import threading
import numpy as np
from typing import Sequence, Tuple


# Attribute layout: name -> (dtype, components); None means one scalar per particle
PARTICLE_ATTRIBUTES = {
    'position': (np.float64, 'n_dimensions'),  # code length units
    'momentum': (np.float64, 3),               # m c (m_e c for photons)
    'weight': (np.float64, None),              # physical particles per macro-particle
    'charge': (np.int16, None),                # charge state [e]
    'tau': (np.float64, None),                 # Monte Carlo optical depth
    'chi': (np.float64, None),                 # quantum parameter (diagnostic)
}

# Optical depth sentinel: a fresh exponential draw is needed
TAU_NEEDS_DRAW = -1.0


class ParticleArray:
    """
    Contiguous particle storage for one species.

    Usage:
        electrons = ParticleArray(1000, n_dimensions=2)
        electrons.initialize_beam(momentum=(500.0, 0.0, 0.0), charge=-1)
        start, stop = photons.append(4)
    """

    def __init__(self, n_particles: int = 0, n_dimensions: int = 3, mass: float = 1.0,
                 has_quantum_parameter: bool = True, has_monte_carlo: bool = True,
                 name: str = 'species'):
        """
        Initialize particle array.

        Parameters:
            n_particles: Number of particles to allocate
            n_dimensions: Position components (1, 2 or 3)
            mass: Mass in electron masses (0 for photons)
            has_quantum_parameter: Species tracks chi
            has_monte_carlo: Species tracks the Monte Carlo optical depth tau
            name: Species name (for printing)
        """
        if n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {n_particles}")
        if n_dimensions not in (1, 2, 3):
            raise ValueError(f"n_dimensions must be 1, 2 or 3, got {n_dimensions}")
        if mass < 0:
            raise ValueError(f"mass must be >= 0, got {mass}")

        self.n_dimensions = n_dimensions
        self.mass = float(mass)
        self.has_quantum_parameter = has_quantum_parameter
        self.has_monte_carlo = has_monte_carlo
        self.name = name

        self.lock = threading.Lock()

        for attr, array in self._allocate(n_particles).items():
            setattr(self, attr, array)

    def _allocate(self, n: int) -> dict:
        """Fresh arrays for n particles following PARTICLE_ATTRIBUTES."""
        arrays = {}
        for name, (dtype, components) in PARTICLE_ATTRIBUTES.items():
            if components == 'n_dimensions':
                components = self.n_dimensions
            shape = (n,) if components is None else (n, components)
            arrays[name] = np.zeros(shape, dtype=dtype)
        arrays['tau'][:] = TAU_NEEDS_DRAW
        return arrays

    @property
    def n_particles(self) -> int:
        return self.weight.shape[0]

    def __len__(self) -> int:
        return self.n_particles

    def initialize_beam(self, momentum: Sequence[float],
                        position: Sequence[float] = (0.0, 0.0, 0.0),
                        weight: float = 1.0, charge: int = -1,
                        momentum_spread: float = 0.0, seed=None):
        """
        Initialize a mono-energetic beam.

        Parameters:
            momentum: (px, py, pz) [m c]
            position: Starting position (first n_dimensions components used)
            weight: Weight of every macro-particle
            charge: Charge state
            momentum_spread: Relative Gaussian spread of |p| (sigma)
            seed: Seed for the spread
        """
        self.position[:] = np.asarray(position, dtype=np.float64)[:self.n_dimensions]
        self.momentum[:] = np.asarray(momentum, dtype=np.float64)
        self.weight[:] = weight
        self.charge[:] = charge
        self.tau[:] = TAU_NEEDS_DRAW
        self.chi[:] = 0.0

        if momentum_spread > 0:
            rng = np.random.default_rng(seed)
            scale = rng.normal(1.0, momentum_spread, self.n_particles)
            self.momentum *= np.maximum(scale, 0.0)[:, None]

    def append(self, n: int, **values) -> Tuple[int, int]:
        """
        Append n particles and optionally fill them.

        Thread-safe: growth and fill happen under `lock`, so concurrent
        appends never interleave. Unfilled attributes are zero (tau = -1).

        Parameters:
            n: Number of particles to append
            **values: Attribute name -> value broadcastable to the new rows,
                e.g. weight=w, momentum=p, charge=0

        Returns:
            (start, stop) index range of the new entries
        """
        if n < 0:
            raise ValueError(f"Cannot append {n} particles")
        unknown = set(values) - set(PARTICLE_ATTRIBUTES)
        if unknown:
            raise ValueError(f"Unknown particle attributes: {sorted(unknown)}")

        with self.lock:
            start, stop = self._append_unlocked(n)
            for attr, value in values.items():
                getattr(self, attr)[start:stop] = value
        return start, stop

    def _append_unlocked(self, n: int) -> Tuple[int, int]:
        start = self.n_particles
        stop = start + n
        if n == 0:
            return start, stop

        for attr, array in self._allocate(n).items():
            setattr(self, attr, np.concatenate([getattr(self, attr), array]))
        return start, stop

    def check_range(self, istart: int, iend: int):
        """Raise IndexError unless 0 <= istart <= iend <= n_particles."""
        if not (0 <= istart <= iend <= self.n_particles):
            raise IndexError(f"Particle range [{istart}, {iend}) outside "
                             f"{self.name} container of size {self.n_particles}")

    def lorentz_factor(self) -> np.ndarray:
        """Lorentz factor per particle (|p| for massless species)."""
        p2 = np.sum(self.momentum**2, axis=1)
        if self.mass == 0.0:
            return np.sqrt(p2)
        return np.sqrt(1.0 + p2)

    def kinetic_energy(self) -> float:
        """Total weighted kinetic energy [m_e c^2]."""
        gamma = self.lorentz_factor()
        if self.mass == 0.0:
            return float(np.sum(self.weight * gamma))
        return float(np.sum(self.weight * (gamma - 1.0)) * self.mass)

    def total_weight(self) -> float:
        return float(np.sum(self.weight))

    def get_statistics(self) -> dict:
        """Get statistics about the particle array."""
        gamma = self.lorentz_factor()
        n = self.n_particles

        return {
            'n_total': n,
            'total_weight': self.total_weight(),
            'kinetic_energy': self.kinetic_energy(),
            'mean_gamma': float(np.mean(gamma)) if n > 0 else 0.0,
            'max_gamma': float(np.max(gamma)) if n > 0 else 0.0,
            'mean_chi': float(np.mean(self.chi)) if n > 0 else 0.0,
            'max_chi': float(np.max(self.chi)) if n > 0 else 0.0,
        }

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return (f"ParticleArray({self.name}, n={stats['n_total']}, "
                f"<gamma>={stats['mean_gamma']:.1f}, "
                f"max chi={stats['max_chi']:.3g})")
