"""Shared fixtures: small hand-made tables and single-particle setups."""

import numpy as np
import pytest

from radiation_mc.core.fields import FieldBuffer
from radiation_mc.core.particle import ParticleArray
from radiation_mc.physics.constants import Normalization
from radiation_mc.physics.tables import RadiationTables


@pytest.fixture
def unit_normalization() -> Normalization:
    """
    Normalization with E_Schwinger = 1, so chi = |q| gamma |E| for p perpendicular to E.

    Only the chi scale is overridden: factor_dNph_dt and
    factor_classical_radiated_power keep their 1 micron values, so tests
    take rate prefactors from this object, never from a fresh Normalization.
    """
    norm = Normalization()
    norm.inv_norm_E_Schwinger = 1.0
    norm.norm_E_Schwinger = 1.0
    return norm


@pytest.fixture
def make_tables(unit_normalization):
    """
    Factory for tables on chi in [1e-3, 1e2] (6 rows, one per decade).

    integfochi is constant, min_photon_chi is chi * 1e-3 and every xi row
    is linspace(0, 1, n_cols)**row_power.
    """
    def _make(chi_continuous=1e-3, chi_discontinuous=1e-2, integ_value=1.0,
              row_power=1.0, n_cols=11, normalization=None):
        chis = np.logspace(-3, 2, 6)
        xi_row = np.linspace(0.0, 1.0, n_cols)**row_power
        return RadiationTables(
            integfochi=np.full(6, integ_value),
            min_particle_chi=1e-3, max_particle_chi=1e2,
            min_photon_chi=chis * 1e-3,
            xi=np.tile(xi_row, (6, 1)),
            minimum_chi_continuous=chi_continuous,
            minimum_chi_discontinuous=chi_discontinuous,
            normalization=normalization if normalization is not None else unit_normalization,
        )
    return _make


@pytest.fixture
def tables(make_tables) -> RadiationTables:
    return make_tables()


@pytest.fixture
def make_beam():
    """
    Factory for electrons moving along x in a field E = (0, Ey, 0).

    With the unit normalization every particle has chi = gamma * |Ey|.
    """
    def _make(n=1, px=1000.0, Ey=1e-3, weight=1.0, n_dimensions=3, ipart_ref=0):
        electrons = ParticleArray(n, n_dimensions=n_dimensions, name='electron')
        electrons.initialize_beam(momentum=(px, 0.0, 0.0),
                                  position=(1.0, 2.0, 3.0),
                                  weight=weight, charge=-1)
        fields = FieldBuffer.uniform(n, E=(0.0, Ey, 0.0), ipart_ref=ipart_ref)
        return electrons, fields
    return _make


@pytest.fixture
def photons() -> ParticleArray:
    return ParticleArray(0, n_dimensions=3, mass=0.0, name='photon')
