"""
Cross-section tables for nonlinear inverse Compton scattering.

The Monte Carlo radiation model consumes three read-only tables:

    integfochi      photon production yield integral vs particle chi
    min_photon_chi  lowest photon chi worth sampling vs particle chi
    xi              cumulative photon-chi distribution (particle chi x photon chi)

Particle-chi axes are uniform in log10 chi. Column k of xi row i is the
cumulative probability at

    log10 chi_ph = log10 chi_min_i + k / (n_photon_chi - 1) * (log10 chi_i - log10 chi_min_i)

so each row spans [min_photon_chi[i], chi_i] and rises from 0 to 1.

All queries clamp to the declared table domain instead of extrapolating.
Lookups used inside the transport kernels are plain numba functions taking
the arrays returned by RadiationTables.kernel_arrays().

References:
    - Lobet, PhD thesis, Universite de Bordeaux (2015)
    - Ridgers et al., J. Comput. Phys. 260, 273 (2014)
    - Niel et al., Phys. Rev. E 97, 043209 (2018)
"""

import numpy as np
import numba
from pathlib import Path
from typing import Optional, Tuple, Union

from radiation_mc.physics.constants import Normalization


# ============================================================================
# Numba lookups
# ============================================================================

@numba.njit(fastmath=True, cache=True, nogil=True)
def ridgers_fit(chi: float) -> float:
    """Gaunt-factor fit g(chi) reducing the classical radiated power."""
    return (1.0 + 4.8*(1.0 + chi)*np.log(1.0 + 1.7*chi) + 2.44*chi*chi)**(-2.0/3.0)


@numba.njit(fastmath=True, cache=True, nogil=True)
def corrected_radiated_energy(chi: float, dt: float,
                              factor_classical_radiated_power: float) -> float:
    """
    Quantum-corrected radiated energy over dt [m_e c^2].

        W = 2/3 alpha / lambda_c * g(chi) * chi^2 * dt
    """
    return factor_classical_radiated_power * ridgers_fit(chi) * dt * chi * chi


@numba.njit(fastmath=True, cache=True, nogil=True)
def photon_production_yield(chi: float, gamma: float, integfochi: np.ndarray,
                            log10_min_chi: float, inv_delta: float,
                            factor_dNph_dt: float) -> float:
    """
    Photon production rate dN/dt for a particle of quantum parameter chi.

    Linear interpolation of integfochi in log10 chi; values outside the
    table take the edge value.
    """
    if chi <= 0.0:
        return 0.0

    n = integfochi.shape[0]
    x = (np.log10(chi) - log10_min_chi) * inv_delta

    if x <= 0.0:
        integ = integfochi[0]
    elif x >= n - 1:
        integ = integfochi[n - 1]
    else:
        i = int(np.floor(x))
        d = x - i
        integ = integfochi[i]*(1.0 - d) + integfochi[i + 1]*d

    return factor_dNph_dt * integ * chi / gamma


@numba.njit(fastmath=True, cache=True, nogil=True)
def _row_position(chi: float, n_rows: int, log10_min_chi: float,
                  inv_delta: float) -> Tuple[int, float]:
    """Lower row index and fraction for chi on a log10 grid (clamped)."""
    x = (np.log10(chi) - log10_min_chi) * inv_delta
    if x <= 0.0:
        return 0, 0.0
    if x >= n_rows - 1:
        return n_rows - 1, 0.0
    i = int(np.floor(x))
    return i, x - i


@numba.njit(fastmath=True, cache=True, nogil=True)
def _inverse_cdf_column(row: np.ndarray, u: float) -> float:
    """
    Fractional column where a non-decreasing cumulative row reaches u.

    Binary search for the bin [j, j+1] with row[j] <= u < row[j+1], then
    linear interpolation inside the bin. Clamped to [0, n-1].
    """
    n = row.shape[0]
    if u <= row[0]:
        return 0.0
    if u >= row[n - 1]:
        return n - 1.0

    lo = 0
    hi = n - 1
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if row[mid] <= u:
            lo = mid
        else:
            hi = mid

    width = row[hi] - row[lo]
    if width > 0.0:
        return lo + (u - row[lo]) / width
    return float(lo)


@numba.njit(fastmath=True, cache=True, nogil=True)
def minimum_photon_chi(chi: float, min_photon_chi: np.ndarray,
                       log10_min_chi: float, inv_delta: float) -> float:
    """Lower bound of the photon chi range for parent chi (log interpolation)."""
    n = min_photon_chi.shape[0]
    i, d = _row_position(chi, n, log10_min_chi, inv_delta)
    if d == 0.0:
        return min_photon_chi[i]
    return 10.0**((1.0 - d)*np.log10(min_photon_chi[i]) + d*np.log10(min_photon_chi[i + 1]))


@numba.njit(fastmath=True, cache=True, nogil=True)
def sample_photon_chi(chi: float, u: float, min_photon_chi: np.ndarray,
                      xi: np.ndarray, log10_min_chi: float, inv_delta: float) -> float:
    """
    Draw a photon quantum parameter by inverse-transform sampling.

    Parameters:
        chi: Parent quantum parameter
        u: Uniform random number in [0, 1)
        min_photon_chi: Lower photon-chi bound per table row
        xi: Cumulative distribution, shape (n_rows, n_photon_chi)
        log10_min_chi: log10 of the first row's particle chi
        inv_delta: 1 / row spacing in log10 chi

    Returns:
        Photon chi in [minimum_photon_chi(chi), chi]
    """
    n_rows = xi.shape[0]
    n_cols = xi.shape[1]

    i, d = _row_position(chi, n_rows, log10_min_chi, inv_delta)

    column = _inverse_cdf_column(xi[i], u)
    if d > 0.0:
        column = (1.0 - d)*column + d*_inverse_cdf_column(xi[i + 1], u)

    log10_chi = np.log10(chi)
    log10_low = np.log10(minimum_photon_chi(chi, min_photon_chi, log10_min_chi, inv_delta))
    if log10_low > log10_chi:
        log10_low = log10_chi

    return 10.0**(log10_low + column / (n_cols - 1) * (log10_chi - log10_low))


# ============================================================================
# Synthetic table construction (quantum synchrotron spectrum)
# ============================================================================

def _k13_tail_integral(delta: np.ndarray) -> np.ndarray:
    """int_delta^inf K_{1/3}(s) ds, tabulated once on a log grid."""
    from scipy.special import gamma, kv
    from scipy.integrate import cumulative_trapezoid

    s = np.logspace(-8, np.log10(60.0), 4000)
    k13 = kv(1.0 / 3.0, s)
    # K_{1/3}(s) ~ Gamma(1/3)/2 (2/s)^(1/3) below s[0]
    head0 = 0.75 * gamma(1.0 / 3.0) * 2.0**(1.0 / 3.0) * s[0]**(2.0 / 3.0)
    head = head0 + cumulative_trapezoid(k13, s, initial=0.0)
    total = np.pi / np.sqrt(3.0)
    tail = np.maximum(total - head, 0.0)

    delta = np.atleast_1d(np.asarray(delta, dtype=np.float64))
    out = np.interp(np.log(np.clip(delta, s[0], s[-1])), np.log(s), tail)
    out[delta >= s[-1]] = 0.0
    out[delta <= s[0]] = total
    return out


def photon_number_spectrum(chi: float, xi_frac: np.ndarray) -> np.ndarray:
    """
    Shape of the photon number spectrum dN/dchi_ph (up to chi-only factors).

        h(chi, xi) = (1 - xi + 1/(1 - xi)) K_{2/3}(delta) - int_delta^inf K_{1/3}
        delta = 2 xi / (3 chi (1 - xi)),   xi = chi_ph / chi

    Parameters:
        chi: Parent quantum parameter
        xi_frac: Photon chi fractions chi_ph / chi in (0, 1)
    """
    from scipy.special import kv

    xi_frac = np.asarray(xi_frac, dtype=np.float64)
    delta = 2.0 * xi_frac / (3.0 * chi * (1.0 - xi_frac))
    h = (1.0 - xi_frac + 1.0 / (1.0 - xi_frac)) * kv(2.0 / 3.0, delta) - _k13_tail_integral(delta)
    return np.maximum(np.nan_to_num(h, nan=0.0, posinf=0.0), 0.0)


# ============================================================================
# Table value type
# ============================================================================

class RadiationTables:
    """
    Immutable radiation cross-section tables and the queries built on them.

    Usage:
        tables = RadiationTables.load('radiation_tables.h5')
        rate = tables.photon_production_yield(chi=0.5, gamma=1000.0)
        chi_ph = tables.sample_photon_chi(chi=0.5, uniform_sample=0.3)
    """

    # Dataset and attribute names in HDF5 files
    H5_DATASETS = ('integfochi', 'min_photon_chi_for_xi', 'xi')
    H5_ATTRIBUTES = ('min_particle_chi', 'max_particle_chi',
                     'xi_min_particle_chi', 'xi_max_particle_chi')

    def __init__(self, integfochi: np.ndarray, min_particle_chi: float, max_particle_chi: float,
                 min_photon_chi: np.ndarray, xi: np.ndarray,
                 xi_min_particle_chi: Optional[float] = None,
                 xi_max_particle_chi: Optional[float] = None,
                 minimum_chi_continuous: float = 1e-3,
                 minimum_chi_discontinuous: float = 1e-2,
                 normalization: Optional[Normalization] = None):
        """
        Initialize tables from arrays.

        Parameters:
            integfochi: Yield integral on the particle-chi grid
            min_particle_chi, max_particle_chi: Domain of integfochi
            min_photon_chi: Lower photon chi bound per xi row
            xi: Cumulative distribution, shape (len(min_photon_chi), n_photon_chi)
            xi_min_particle_chi, xi_max_particle_chi: Domain of the xi rows
                (default: same as integfochi)
            minimum_chi_continuous: Below this chi, no radiation at all
            minimum_chi_discontinuous: Above this chi, stochastic emission
            normalization: Code-unit normalization (default 1 micron)
        """
        self.normalization = normalization if normalization is not None else Normalization()

        self._integfochi = self._frozen(integfochi, 1, 'integfochi')
        self._min_photon_chi = self._frozen(min_photon_chi, 1, 'min_photon_chi')
        self._xi = self._frozen(xi, 2, 'xi')

        if xi_min_particle_chi is None:
            xi_min_particle_chi = min_particle_chi
        if xi_max_particle_chi is None:
            xi_max_particle_chi = max_particle_chi

        for name, (lo, hi) in {'integfochi': (min_particle_chi, max_particle_chi),
                               'xi': (xi_min_particle_chi, xi_max_particle_chi)}.items():
            if not (0.0 < lo < hi):
                raise ValueError(f"Invalid particle chi domain for {name}: [{lo}, {hi}]")

        if self._integfochi.size < 2:
            raise ValueError("integfochi needs at least 2 points")
        if self._xi.shape[0] != self._min_photon_chi.size:
            raise ValueError(f"xi has {self._xi.shape[0]} rows but min_photon_chi has "
                             f"{self._min_photon_chi.size} entries")
        if self._xi.shape[0] < 2 or self._xi.shape[1] < 2:
            raise ValueError(f"xi must be at least 2x2, got {self._xi.shape}")
        if np.any(self._min_photon_chi <= 0.0):
            raise ValueError("min_photon_chi must be strictly positive")
        if np.any(np.diff(self._xi, axis=1) < 0.0):
            raise ValueError("xi rows must be non-decreasing cumulative distributions")
        if not (0.0 <= minimum_chi_continuous <= minimum_chi_discontinuous):
            raise ValueError(f"Need 0 <= minimum_chi_continuous ({minimum_chi_continuous}) "
                             f"<= minimum_chi_discontinuous ({minimum_chi_discontinuous})")

        self.min_particle_chi = float(min_particle_chi)
        self.max_particle_chi = float(max_particle_chi)
        self.xi_min_particle_chi = float(xi_min_particle_chi)
        self.xi_max_particle_chi = float(xi_max_particle_chi)
        self._minimum_chi_continuous = float(minimum_chi_continuous)
        self._minimum_chi_discontinuous = float(minimum_chi_discontinuous)

        # Log10 grid parameters
        self.log10_min_particle_chi = np.log10(self.min_particle_chi)
        self.integfochi_inv_delta = (self._integfochi.size - 1) / \
            (np.log10(self.max_particle_chi) - self.log10_min_particle_chi)
        self.xi_log10_min_particle_chi = np.log10(self.xi_min_particle_chi)
        self.xi_inv_delta = (self._xi.shape[0] - 1) / \
            (np.log10(self.xi_max_particle_chi) - self.xi_log10_min_particle_chi)

    @staticmethod
    def _frozen(array, ndim: int, name: str) -> np.ndarray:
        data = np.array(array, dtype=np.float64, copy=True)
        if data.ndim != ndim:
            raise ValueError(f"{name} must be {ndim}-D, got shape {data.shape}")
        if not np.all(np.isfinite(data)):
            raise ValueError(f"{name} contains non-finite values")
        data.setflags(write=False)
        return data

    # ------------------------------------------------------------------
    # Declared dimensions
    # ------------------------------------------------------------------

    @property
    def integfochi(self) -> np.ndarray:
        return self._integfochi

    @property
    def min_photon_chi(self) -> np.ndarray:
        return self._min_photon_chi

    @property
    def xi(self) -> np.ndarray:
        return self._xi

    @property
    def size_particle_chi(self) -> int:
        return self._integfochi.size

    @property
    def xi_size_particle_chi(self) -> int:
        return self._xi.shape[0]

    @property
    def size_photon_chi(self) -> int:
        return self._xi.shape[1]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def minimum_chi_continuous(self) -> float:
        """Particles at or below this chi do not radiate."""
        return self._minimum_chi_continuous

    def minimum_chi_discontinuous(self) -> float:
        """Particles above this chi radiate through discrete photon emission."""
        return self._minimum_chi_discontinuous

    def photon_production_yield(self, chi: float, gamma: float) -> float:
        """Photon production rate [1/code time] for (chi, gamma)."""
        return photon_production_yield(chi, gamma, self._integfochi,
                                       self.log10_min_particle_chi,
                                       self.integfochi_inv_delta,
                                       self.normalization.factor_dNph_dt)

    def minimum_photon_chi(self, chi: float) -> float:
        """Lower bound of producible photon chi for parent chi."""
        return minimum_photon_chi(chi, self._min_photon_chi,
                                  self.xi_log10_min_particle_chi, self.xi_inv_delta)

    def sample_photon_chi(self, chi: float, uniform_sample: float) -> float:
        """Photon chi for parent chi and a uniform sample in [0, 1)."""
        return sample_photon_chi(chi, uniform_sample, self._min_photon_chi, self._xi,
                                 self.xi_log10_min_particle_chi, self.xi_inv_delta)

    def corrected_radiated_energy(self, chi: float, dt: float) -> float:
        """Ridgers-corrected classical radiated energy over dt [m_e c^2]."""
        return corrected_radiated_energy(chi, dt,
                                         self.normalization.factor_classical_radiated_power)

    def kernel_arrays(self) -> tuple:
        """
        Arrays and scalars passed to the transport kernels, in order:

            integfochi, log10_min_chi, inv_delta,
            min_photon_chi, xi, xi_log10_min_chi, xi_inv_delta,
            factor_dNph_dt, factor_classical_radiated_power,
            minimum_chi_continuous, minimum_chi_discontinuous
        """
        return (self._integfochi, self.log10_min_particle_chi, self.integfochi_inv_delta,
                self._min_photon_chi, self._xi,
                self.xi_log10_min_particle_chi, self.xi_inv_delta,
                self.normalization.factor_dNph_dt,
                self.normalization.factor_classical_radiated_power,
                self._minimum_chi_continuous, self._minimum_chi_discontinuous)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Union[str, Path], normalization: Optional[Normalization] = None,
             **thresholds) -> "RadiationTables":
        """
        Load tables from HDF5 (.h5/.hdf5) or NumPy (.npz).

        Tries HDF5 first. A path without suffix looks for '<path>.h5' then
        '<path>.npz'.

        Parameters:
            path: Table file
            normalization: Code-unit normalization
            **thresholds: minimum_chi_continuous / minimum_chi_discontinuous
                overrides (otherwise read from the file when present)
        """
        path = Path(path)
        candidates = [path] if path.suffix else [path.with_suffix('.h5'), path.with_suffix('.npz')]
        existing = [p for p in candidates if p.exists()]
        if not existing:
            raise FileNotFoundError(f"Radiation table file not found: "
                                    f"{', '.join(str(p) for p in candidates)}")
        path = existing[0]

        if path.suffix == '.npz':
            with np.load(path) as data:
                arrays = {name: np.array(data[name]) for name in cls.H5_DATASETS}
                attrs = {name: float(data[name]) for name in data.files
                         if name not in cls.H5_DATASETS}
        else:
            import h5py
            with h5py.File(path, 'r') as f:
                missing = [name for name in cls.H5_DATASETS if name not in f]
                if missing:
                    raise ValueError(f"{path.name} is missing datasets: {missing}")
                arrays = {name: f[name][()] for name in cls.H5_DATASETS}
                attrs = {key: float(value) for key, value in f.attrs.items()}

        for name in ('minimum_chi_continuous', 'minimum_chi_discontinuous'):
            if name in attrs and name not in thresholds:
                thresholds[name] = attrs[name]

        return cls(arrays['integfochi'], attrs['min_particle_chi'], attrs['max_particle_chi'],
                   arrays['min_photon_chi_for_xi'], arrays['xi'],
                   xi_min_particle_chi=attrs.get('xi_min_particle_chi'),
                   xi_max_particle_chi=attrs.get('xi_max_particle_chi'),
                   normalization=normalization, **thresholds)

    def save(self, path: Union[str, Path]) -> Path:
        """Write tables to HDF5 (or .npz when the suffix is .npz)."""
        path = Path(path)
        attrs = {
            'min_particle_chi': self.min_particle_chi,
            'max_particle_chi': self.max_particle_chi,
            'xi_min_particle_chi': self.xi_min_particle_chi,
            'xi_max_particle_chi': self.xi_max_particle_chi,
            'minimum_chi_continuous': self._minimum_chi_continuous,
            'minimum_chi_discontinuous': self._minimum_chi_discontinuous,
        }

        if path.suffix == '.npz':
            np.savez(path, integfochi=self._integfochi,
                     min_photon_chi_for_xi=self._min_photon_chi, xi=self._xi, **attrs)
            return path

        import h5py
        with h5py.File(path, 'w') as f:
            f.create_dataset('integfochi', data=self._integfochi)
            f.create_dataset('min_photon_chi_for_xi', data=self._min_photon_chi)
            f.create_dataset('xi', data=self._xi)
            for key, value in attrs.items():
                f.attrs[key] = value
        return path

    # ------------------------------------------------------------------
    # Synthetic tables
    # ------------------------------------------------------------------

    @classmethod
    def synthetic(cls, min_particle_chi: float = 1e-3, max_particle_chi: float = 1e2,
                  size_particle_chi: int = 64, size_photon_chi: int = 64,
                  xi_threshold: float = 1e-3, n_quad: int = 2000,
                  normalization: Optional[Normalization] = None,
                  **thresholds) -> "RadiationTables":
        """
        Build approximate tables from the quantum synchrotron spectrum.

        Good enough for demos and tests; physics runs should load tables
        produced by a dedicated table generator.

        Parameters:
            min_particle_chi, max_particle_chi: Particle chi domain
            size_particle_chi: Rows of integfochi and xi
            size_photon_chi: Columns of xi
            xi_threshold: Cumulative fraction discarded below min_photon_chi
            n_quad: Quadrature points per row
        """
        from scipy.integrate import cumulative_trapezoid, trapezoid

        chis = np.logspace(np.log10(min_particle_chi), np.log10(max_particle_chi),
                           size_particle_chi)

        # xi_frac grid dense at both ends of (0, 1)
        low = np.logspace(-12, np.log10(0.5), n_quad // 2, endpoint=False)
        high = 1.0 - np.logspace(np.log10(0.5), -12, n_quad // 2)
        frac = np.concatenate([low, high])

        integfochi = np.empty(size_particle_chi)
        min_photon_chi = np.empty(size_particle_chi)
        xi = np.empty((size_particle_chi, size_photon_chi))

        for i, chi in enumerate(chis):
            h = photon_number_spectrum(chi, frac)

            # dN/dt = factor * I * chi / gamma  <=>  I = 2 / (3 chi^2) * int h dchi_ph
            integral = trapezoid(h, frac) * chi
            integfochi[i] = 2.0 / (3.0 * chi * chi) * integral

            cdf = cumulative_trapezoid(h, frac, initial=0.0)
            cdf /= cdf[-1]

            # Lower photon-chi bound: drop the first xi_threshold of the distribution
            k = max(int(np.searchsorted(cdf, xi_threshold)) - 1, 0)
            frac_min = frac[k]
            min_photon_chi[i] = frac_min * chi

            log_frac = np.linspace(np.log10(frac_min), 0.0, size_photon_chi)
            row = np.interp(10.0**log_frac, frac, cdf)
            row = (row - row[0]) / (row[-1] - row[0])
            row[-1] = 1.0
            xi[i] = np.maximum.accumulate(row)

        return cls(integfochi, min_particle_chi, max_particle_chi,
                   min_photon_chi, xi, normalization=normalization, **thresholds)

    def __repr__(self) -> str:
        return (f"RadiationTables(chi=[{self.min_particle_chi:.1e}, {self.max_particle_chi:.1e}], "
                f"integfochi={self.size_particle_chi}, "
                f"xi={self.xi_size_particle_chi}x{self.size_photon_chi}, "
                f"chi_cont={self._minimum_chi_continuous:.1e}, "
                f"chi_disc={self._minimum_chi_discontinuous:.1e})")
