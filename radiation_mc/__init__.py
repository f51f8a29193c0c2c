"""
RADIATION_MC: Quantum radiation reaction for particle-in-cell simulations

Monte Carlo nonlinear inverse Compton scattering for ultra-relativistic
particles in strong fields: stochastic photon emission, quantum-corrected
continuous friction and down-sampled macro-photon creation, executed over
particle batches with numba.

Modules:
    core: Particle containers, field samples, random streams
    physics: Quantum parameter, normalization, cross-section tables
    transport: Radiation-reaction engines and model selection
"""

__version__ = "0.1.0"
__author__ = "William Comaskey"

from radiation_mc.config import RadiationConfig
from radiation_mc.core.particle import ParticleArray
from radiation_mc.core.fields import FieldBuffer
from radiation_mc.core.random_streams import HostStream, IndexLCGStream, SequenceStream
from radiation_mc.physics.constants import Normalization
from radiation_mc.physics.tables import RadiationTables
from radiation_mc.transport.engine import (RadiationMonteCarlo, CorrectedLandauLifshitz,
                                           NoRadiation)
from radiation_mc.transport.factory import create_radiation_model

__all__ = [
    "RadiationConfig",
    "ParticleArray",
    "FieldBuffer",
    "HostStream",
    "IndexLCGStream",
    "SequenceStream",
    "Normalization",
    "RadiationTables",
    "RadiationMonteCarlo",
    "CorrectedLandauLifshitz",
    "NoRadiation",
    "create_radiation_model",
]
