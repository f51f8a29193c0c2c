"""
Configuration of the radiation-reaction core.

All parameters are validated when the configuration is built, so the hot
kernels never see an invalid value (e.g. a photon down-sampling factor of
zero is rejected here, not inside the Monte Carlo loop).

Example YAML:

    radiation:
      model: monte-carlo
      dt: 0.05
      photon_sampling: 4
      photon_gamma_threshold: 2.0
      backend: threads
      seed: 1234
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from radiation_mc.physics.constants import DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI


MODELS = ('monte-carlo', 'corrected-landau-lifshitz', 'none')
BACKENDS = ('serial', 'threads', 'vector')
RANDOM_STREAMS = ('host', 'lcg')


@dataclass
class RadiationConfig:
    """
    Parameters of a radiation-reaction model.

    Attributes:
        dt: Macro time step [1/omega_r]
        model: 'monte-carlo', 'corrected-landau-lifshitz' or 'none'
        max_monte_carlo_iterations: Per-particle cap on Monte Carlo sub-steps
        epsilon_tau: Optical depth below which an emission fires
        photon_sampling: Macro-photons created per emission event (N >= 1)
        photon_gamma_threshold: Minimum photon energy [m_e c^2] for creation
        reference_angular_frequency_SI: omega_r [rad/s]
        backend: 'serial', 'threads' or 'vector'
        n_threads: Worker threads for the 'threads' backend
        chunk_size: Particles per kernel launch
        seed: Seed of the random streams (None: fresh entropy)
        random_stream: 'host' or 'lcg'
    """

    dt: float = 0.1
    model: str = 'monte-carlo'
    max_monte_carlo_iterations: int = 100
    epsilon_tau: float = 1e-100
    photon_sampling: int = 1
    photon_gamma_threshold: float = 2.0
    reference_angular_frequency_SI: float = DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI
    backend: str = 'serial'
    n_threads: int = field(default_factory=lambda: os.cpu_count() or 1)
    chunk_size: int = 4096
    seed: Optional[int] = None
    random_stream: str = 'host'

    def __post_init__(self):
        self.model = str(self.model).lower()
        self.backend = str(self.backend).lower()
        self.random_stream = str(self.random_stream).lower()

        # PyYAML reads '1e-3' (no dot) as a string
        for name in ('dt', 'epsilon_tau', 'photon_gamma_threshold',
                     'reference_angular_frequency_SI'):
            setattr(self, name, float(getattr(self, name)))

        if self.model not in MODELS:
            raise ValueError(f"Unknown radiation model '{self.model}'. Available: {list(MODELS)}")
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}'. Available: {list(BACKENDS)}")
        if self.random_stream not in RANDOM_STREAMS:
            raise ValueError(f"Unknown random stream '{self.random_stream}'. "
                             f"Available: {list(RANDOM_STREAMS)}")

        if not self.dt > 0:
            raise ValueError(f"dt must be > 0, got {self.dt}")
        if int(self.max_monte_carlo_iterations) != self.max_monte_carlo_iterations \
                or self.max_monte_carlo_iterations < 1:
            raise ValueError(f"max_monte_carlo_iterations must be an integer >= 1, "
                             f"got {self.max_monte_carlo_iterations}")
        if self.epsilon_tau < 0:
            raise ValueError(f"epsilon_tau must be >= 0, got {self.epsilon_tau}")
        if int(self.photon_sampling) != self.photon_sampling or self.photon_sampling < 1:
            raise ValueError(f"photon_sampling must be an integer >= 1, got {self.photon_sampling}")
        if self.photon_gamma_threshold < 0:
            raise ValueError(f"photon_gamma_threshold must be >= 0, "
                             f"got {self.photon_gamma_threshold}")
        if not self.reference_angular_frequency_SI > 0:
            raise ValueError(f"reference_angular_frequency_SI must be > 0, "
                             f"got {self.reference_angular_frequency_SI}")
        if int(self.n_threads) != self.n_threads or self.n_threads < 1:
            raise ValueError(f"n_threads must be an integer >= 1, got {self.n_threads}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")

        self.max_monte_carlo_iterations = int(self.max_monte_carlo_iterations)
        self.photon_sampling = int(self.photon_sampling)
        self.n_threads = int(self.n_threads)

    @classmethod
    def from_dict(cls, mapping: dict, strict: bool = True) -> "RadiationConfig":
        """
        Build a configuration from a mapping.

        Parameters:
            mapping: Parameter names -> values (a 'radiation' sub-mapping is accepted)
            strict: Reject unknown keys
        """
        if 'radiation' in mapping and isinstance(mapping['radiation'], dict):
            mapping = mapping['radiation']

        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown and strict:
            raise ValueError(f"Unknown radiation parameters: {sorted(unknown)}")

        return cls(**{k: v for k, v in mapping.items() if k in known})

    @classmethod
    def from_yaml(cls, path: Union[str, Path], strict: bool = True) -> "RadiationConfig":
        """Load a configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{path.name} must contain a mapping, got {type(data).__name__}")

        return cls.from_dict(data, strict=strict)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_yaml(self, path: Union[str, Path]) -> Path:
        """Write the configuration under a top-level 'radiation' key."""
        path = Path(path)
        with open(path, 'w') as f:
            yaml.safe_dump({'radiation': self.to_dict()}, f, sort_keys=False)
        return path
