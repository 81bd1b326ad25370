from typing import NamedTuple

import numpy as np

from tracegas.basic_types import MetLevelDimension
from tracegas.constants_and_conversions import (
    DRY_AIR_GAS_CONSTANT_IN_SI,
    DRY_AIR_TO_WATER_MOLAR_MASS_RATIO,
    EARTH_MEAN_RADIUS_IN_SI,
    EQUATORIAL_GRAVITY_IN_SI,
    FIRST_ECCENTRICITY_SQUARED,
    SOMIGLIANA_CONSTANT,
)
from tracegas.xarray_functional_wrappers import (
    Dimensionalize,
    set_result_name_and_units,
)


class AltitudeAndGravity(NamedTuple):
    altitudes_in_m: np.ndarray[np.float64]
    gravities_in_SI: np.ndarray[np.float64]


def calculate_normal_gravity(latitude_in_degrees: float) -> float:
    """Somigliana's closed form for gravity on the WGS84 ellipsoid."""
    sine_latitude_squared: float = np.sin(np.deg2rad(latitude_in_degrees)) ** 2

    return (
        EQUATORIAL_GRAVITY_IN_SI
        * (1 + SOMIGLIANA_CONSTANT * sine_latitude_squared)
        / np.sqrt(1 - FIRST_ECCENTRICITY_SQUARED * sine_latitude_squared)
    )


def calculate_gravity_at_altitude(
    surface_gravity_in_SI: float, altitudes_in_m: float | np.ndarray[np.float64]
) -> float | np.ndarray[np.float64]:
    return (
        surface_gravity_in_SI
        * (EARTH_MEAN_RADIUS_IN_SI / (EARTH_MEAN_RADIUS_IN_SI + altitudes_in_m)) ** 2
    )


def calculate_virtual_temperatures(
    temperatures_in_K: np.ndarray[np.float64],
    specific_humidities: np.ndarray[np.float64],
) -> np.ndarray[np.float64]:
    return temperatures_in_K * (
        1 + specific_humidities * (DRY_AIR_TO_WATER_MOLAR_MASS_RATIO - 1)
    )


def calculate_altitude_and_gravity_profiles(
    pressures_in_Pa: np.ndarray[np.float64],
    temperatures_in_K: np.ndarray[np.float64],
    specific_humidities: np.ndarray[np.float64],
    latitude_in_degrees: float,
    surface_altitude_in_m: float = 0.0,
) -> AltitudeAndGravity:
    """
    Integrates the hypsometric equation upward from the last level (the
    surface), using the mean virtual temperature of each layer and the
    gravity at the layer's estimated mid-altitude.
    """
    pressures_in_Pa = np.asarray(pressures_in_Pa, dtype=np.float64)

    # the hypsometric thickness diverges at zero pressure
    if np.any(pressures_in_Pa <= 0):
        raise ValueError("Pressure levels must be positive to integrate altitudes.")

    if np.any(np.diff(pressures_in_Pa) <= 0):
        raise ValueError(
            "Pressure levels must increase strictly from the top of the atmosphere to the surface."
        )

    virtual_temperatures: np.ndarray[np.float64] = calculate_virtual_temperatures(
        np.asarray(temperatures_in_K, dtype=np.float64),
        np.asarray(specific_humidities, dtype=np.float64),
    )
    surface_gravity_in_SI: float = calculate_normal_gravity(latitude_in_degrees)

    altitudes: np.ndarray[np.float64] = np.empty_like(pressures_in_Pa)
    altitudes[-1] = surface_altitude_in_m

    for index in range(len(pressures_in_Pa) - 1, 0, -1):
        layer_virtual_temperature: float = 0.5 * (
            virtual_temperatures[index] + virtual_temperatures[index - 1]
        )
        layer_scale_height_times_gravity: float = (
            DRY_AIR_GAS_CONSTANT_IN_SI
            * layer_virtual_temperature
            * np.log(pressures_in_Pa[index] / pressures_in_Pa[index - 1])
        )

        first_guess_thickness: float = layer_scale_height_times_gravity / (
            calculate_gravity_at_altitude(surface_gravity_in_SI, altitudes[index])
        )
        midlayer_gravity: float = calculate_gravity_at_altitude(
            surface_gravity_in_SI, altitudes[index] + 0.5 * first_guess_thickness
        )

        altitudes[index - 1] = (
            altitudes[index] + layer_scale_height_times_gravity / midlayer_gravity
        )

    return AltitudeAndGravity(
        altitudes_in_m=altitudes,
        gravities_in_SI=calculate_gravity_at_altitude(surface_gravity_in_SI, altitudes),
    )


calculate_altitude_and_gravity_dataarrays = set_result_name_and_units(
    result_names=("altitude", "gravity"), units=("m", "m/s^2")
)(
    Dimensionalize(
        argument_dimensions=(
            (MetLevelDimension,),
            (MetLevelDimension,),
            (MetLevelDimension,),
            None,
            None,
        ),
        result_dimensions=((MetLevelDimension,), (MetLevelDimension,)),
    )(calculate_altitude_and_gravity_profiles)
)
