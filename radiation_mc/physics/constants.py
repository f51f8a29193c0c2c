"""
Physical constants and code-unit normalization.

Quantities inside the radiation core are normalized the usual PIC way:
momenta in m_e c, times in 1/omega_r, fields in m_e c omega_r / e, where
omega_r is the reference angular frequency.
"""

import numpy as np

# SI constants (CODATA 2018)
ELECTRON_MASS = 9.1093837015e-31        # kg
SPEED_OF_LIGHT = 299792458.0            # m/s
ELEMENTARY_CHARGE = 1.602176634e-19     # C
RED_PLANCK_CST = 1.054571817e-34        # J s
FINE_STRUCT_CST = 7.2973525693e-3       # dimensionless

# Reference frequency for a 1 micron laser
DEFAULT_WAVELENGTH_SI = 1.0e-6          # m
DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI = 2.0 * np.pi * SPEED_OF_LIGHT / DEFAULT_WAVELENGTH_SI


class Normalization:
    """
    Conversion factors between SI and code units for radiation physics.

    Parameters:
        reference_angular_frequency_SI: omega_r [rad/s]

    Attributes:
        norm_E_Schwinger: Schwinger field m_e c^2 / (hbar omega_r) in code units
        inv_norm_E_Schwinger: Its inverse (used by the chi computation)
        normalized_compton_wavelength: hbar omega_r / (m_e c^2)
        factor_dNph_dt: sqrt(3) alpha / (2 pi lambda_c), photon yield prefactor
        factor_classical_radiated_power: 2/3 alpha / lambda_c
    """

    def __init__(self, reference_angular_frequency_SI: float = DEFAULT_REFERENCE_ANGULAR_FREQUENCY_SI):
        if reference_angular_frequency_SI <= 0:
            raise ValueError(f"reference_angular_frequency_SI must be > 0, "
                             f"got {reference_angular_frequency_SI}")

        self.reference_angular_frequency_SI = float(reference_angular_frequency_SI)

        mc2 = ELECTRON_MASS * SPEED_OF_LIGHT**2
        self.normalized_compton_wavelength = RED_PLANCK_CST * self.reference_angular_frequency_SI / mc2
        self.norm_E_Schwinger = 1.0 / self.normalized_compton_wavelength
        self.inv_norm_E_Schwinger = self.normalized_compton_wavelength

        self.factor_dNph_dt = (np.sqrt(3.0) * FINE_STRUCT_CST
                               / (2.0 * np.pi * self.normalized_compton_wavelength))
        self.factor_classical_radiated_power = (2.0 / 3.0 * FINE_STRUCT_CST
                                                / self.normalized_compton_wavelength)

    def __repr__(self) -> str:
        return (f"Normalization(omega_r={self.reference_angular_frequency_SI:.4e} rad/s, "
                f"E_S={self.norm_E_Schwinger:.4e})")
