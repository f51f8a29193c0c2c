"""Core module: Particle containers, field samples and random streams."""

from radiation_mc.core.particle import ParticleArray
from radiation_mc.core.fields import FieldBuffer

__all__ = ["ParticleArray", "FieldBuffer"]
