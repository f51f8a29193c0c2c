"""
Selection of the radiation-reaction model configured for a species.

Every model shares the quantum parameter library and the same call
surface: model(particles, fields, istart, iend, photons) -> radiated energy.
"""

from typing import Optional

from radiation_mc.config import RadiationConfig
from radiation_mc.core.random_streams import RandomStream
from radiation_mc.physics.tables import RadiationTables
from radiation_mc.transport.engine import CorrectedLandauLifshitz, NoRadiation, RadiationMonteCarlo


RADIATION_MODELS = {
    'monte-carlo': RadiationMonteCarlo,
    'corrected-landau-lifshitz': CorrectedLandauLifshitz,
    'none': NoRadiation,
}


def create_radiation_model(config: RadiationConfig, tables: Optional[RadiationTables] = None,
                           stream: Optional[RandomStream] = None, verbose: bool = False):
    """
    Create the radiation model named by config.model.

    Parameters:
        config: Validated radiation parameters
        tables: Cross-section tables (required except for 'none')
        stream: Random stream provider for the Monte Carlo model
        verbose: Print setup information

    Returns:
        Callable radiation model
    """
    if config.model not in RADIATION_MODELS:
        raise ValueError(f"Unknown radiation model '{config.model}'. "
                         f"Available: {list(RADIATION_MODELS.keys())}")

    if config.model == 'none':
        return NoRadiation(config, tables, verbose=verbose)

    if tables is None:
        raise ValueError(f"Radiation model '{config.model}' needs cross-section tables")

    if config.model == 'monte-carlo':
        return RadiationMonteCarlo(config, tables, stream=stream, verbose=verbose)

    return CorrectedLandauLifshitz(config, tables, verbose=verbose)
