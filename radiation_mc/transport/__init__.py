"""Transport module: Radiation-reaction engines (serial, threads, prange)."""

from radiation_mc.transport.engine import RadiationMonteCarlo, CorrectedLandauLifshitz, NoRadiation
from radiation_mc.transport.factory import create_radiation_model

__all__ = ["RadiationMonteCarlo", "CorrectedLandauLifshitz", "NoRadiation",
           "create_radiation_model"]
