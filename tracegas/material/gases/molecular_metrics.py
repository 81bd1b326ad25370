from typing import Final

import numpy as np

from tracegas.constants_and_conversions import DRY_AIR_TO_WATER_MOLAR_MASS_RATIO

MOLECULAR_WEIGHTS: Final[dict[str, float]] = {
    "dry_air": 28.9644,
    "h2o": 18.01528,
    "co2": 44.01,
    "ch4": 16.04,
    "co": 28.01,
    "o2": 31.999,
    "n2": 28.01,
    "n2o": 44.013,
    "o3": 47.998,
    "nh3": 17.03,
}


def specific_humidity_to_h2o_vmr(
    specific_humidities: float | np.ndarray[np.float64],
) -> float | np.ndarray[np.float64]:
    """Moist-air specific humidity (kg/kg) to a water vapour VMR relative to dry air."""
    return (
        specific_humidities
        / (1 - specific_humidities)
        * DRY_AIR_TO_WATER_MOLAR_MASS_RATIO
    )


def h2o_vmr_to_specific_humidity(
    h2o_vmrs: float | np.ndarray[np.float64],
) -> float | np.ndarray[np.float64]:
    mass_ratios = h2o_vmrs / DRY_AIR_TO_WATER_MOLAR_MASS_RATIO

    return mass_ratios / (1 + mass_ratios)


def vmr_to_mass_mixing_ratio(
    vmrs: float | np.ndarray[np.float64], species: str
) -> float | np.ndarray[np.float64]:
    return vmrs * MOLECULAR_WEIGHTS[species] / MOLECULAR_WEIGHTS["dry_air"]
