"""Physics module: Quantum parameter, normalization, cross-section tables."""

from radiation_mc.physics.constants import Normalization
from radiation_mc.physics.tables import RadiationTables

__all__ = ["Normalization", "RadiationTables"]
