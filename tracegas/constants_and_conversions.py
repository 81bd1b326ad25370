from typing import Final

import scipy.constants as sc

GAS_CONSTANT_IN_SI: Final[float] = sc.R  # [J mol^-1 K^-1]
DRY_AIR_MOLAR_MASS_IN_SI: Final[float] = 28.9644e-3  # [kg mol^-1]
WATER_MOLAR_MASS_IN_SI: Final[float] = 18.01528e-3  # [kg mol^-1]
DRY_AIR_GAS_CONSTANT_IN_SI: Final[float] = (
    GAS_CONSTANT_IN_SI / DRY_AIR_MOLAR_MASS_IN_SI
)  # [J kg^-1 K^-1]
DRY_AIR_TO_WATER_MOLAR_MASS_RATIO: Final[float] = (
    DRY_AIR_MOLAR_MASS_IN_SI / WATER_MOLAR_MASS_IN_SI
)

# WGS84 normal gravity (Somigliana form) and mean radius.
EQUATORIAL_GRAVITY_IN_SI: Final[float] = 9.7803253359  # [m s^-2]
SOMIGLIANA_CONSTANT: Final[float] = 0.00193185265241
FIRST_ECCENTRICITY_SQUARED: Final[float] = 0.00669437999013
EARTH_MEAN_RADIUS_IN_SI: Final[float] = 6.371e6  # [m]
