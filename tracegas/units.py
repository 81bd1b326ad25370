"""
Units are explicit side-channel metadata here: every value travels with a
pint-parsable unit string, and the only arithmetic performed on units is the
conversion of one tag into another of the same dimension class.
"""

from enum import Enum
from pathlib import Path
from typing import Final, TypeAlias

import msgspec
import numpy as np
import pint
import pint_xarray
from pint import UnitRegistry

from tracegas.errors import DimensionError

current_directory: Path = Path(__file__).parent

DEFAULT_UNITS_SYSTEM: Final[str] = "mks"
ureg: UnitRegistry = UnitRegistry(system=DEFAULT_UNITS_SYSTEM)
ureg.load_definitions(str(current_directory / "additional_units.txt"))
ureg = pint_xarray.setup_registry(ureg)

NumericValue: TypeAlias = float | np.ndarray


class DimensionClass(Enum):
    """
    Physical categories that decide which units are mutually convertible.
    Each member holds a reference unit of that category.

    Spectral lengths share LENGTH; angles are unitless by convention and
    fall under DIMENSIONLESS together with mass and volume mixing ratios.
    """

    PRESSURE = "pascal"
    TEMPERATURE = "kelvin"
    LENGTH = "meter"
    ACCELERATION = "meter / second ** 2"
    DIMENSIONLESS = "dimensionless"
    WAVENUMBER = "meter ** -1"
    AREA_PER_MOLECULE = "meter ** 2 / molecule"

    @property
    def reference_unit(self) -> pint.Unit:
        return ureg.Unit(self.value)


SPECTRAL_DIMENSION_CLASSES: Final[frozenset[DimensionClass]] = frozenset(
    {DimensionClass.LENGTH, DimensionClass.WAVENUMBER}
)


class PhysicalQuantity(msgspec.Struct, frozen=True):
    value: NumericValue
    units: str


def parse_units(units: str) -> pint.Unit:
    try:
        return ureg.Unit(units)
    except (pint.PintError, AttributeError, TypeError, ValueError) as error:
        raise DimensionError(f"Could not interpret units {units!r}.") from error


def dimension_class_of(units: str) -> DimensionClass:
    parsed_units: pint.Unit = parse_units(units)

    for dimension_class in DimensionClass:
        if parsed_units.is_compatible_with(dimension_class.reference_unit):
            return dimension_class

    raise DimensionError(
        f"Units {units!r} with dimensionality {parsed_units.dimensionality} "
        "do not belong to any supported dimension class."
    )


def is_absolute_temperature(units: str) -> bool:
    if dimension_class_of(units) is not DimensionClass.TEMPERATURE:
        return False

    # delta_degC and friends are multiplicative but describe differences, not states
    if "delta_" in str(parse_units(units)):
        return False

    # offset scales (Celsius, Fahrenheit) do not map zero onto absolute zero
    return bool(ureg.Quantity(0.0, units).to("kelvin").magnitude == 0.0)


def check_same_dimension_class(source_units: str, target_units: str) -> DimensionClass:
    source_class: DimensionClass = dimension_class_of(source_units)
    target_class: DimensionClass = dimension_class_of(target_units)

    if source_class is not target_class:
        raise DimensionError(
            f"Cannot convert {source_units!r} ({source_class.name.lower()}) "
            f"to {target_units!r} ({target_class.name.lower()})."
        )

    if source_class is DimensionClass.TEMPERATURE:
        for units in (source_units, target_units):
            if not is_absolute_temperature(units):
                raise DimensionError(
                    f"Temperature units {units!r} are not an absolute scale."
                )

    return source_class


def _restore_scalar(magnitude: np.ndarray, original_value: NumericValue) -> NumericValue:
    return magnitude.item() if np.ndim(original_value) == 0 else magnitude


def conversion_factor(source_units: str, target_units: str) -> float:
    check_same_dimension_class(source_units, target_units)

    return float(ureg.Quantity(1.0, source_units).to(target_units).magnitude)


def convert(quantity: PhysicalQuantity, target_units: str) -> PhysicalQuantity:
    check_same_dimension_class(quantity.units, target_units)

    converted_magnitude: np.ndarray = np.asarray(
        ureg.Quantity(np.asarray(quantity.value), quantity.units)
        .to(target_units)
        .magnitude
    )

    return PhysicalQuantity(
        value=_restore_scalar(converted_magnitude, quantity.value),
        units=target_units,
    )


def convert_spectral(quantity: PhysicalQuantity, target_units: str) -> PhysicalQuantity:
    """
    Convert between any two spectral units, including across the
    wavelength/wavenumber divide (a reciprocal relation, so ascending
    grids come back descending). Same-family conversions behave like
    `convert`.
    """
    for units in (quantity.units, target_units):
        if dimension_class_of(units) not in SPECTRAL_DIMENSION_CLASSES:
            raise DimensionError(f"Units {units!r} are not spectral units.")

    with ureg.context("sp"):
        converted_magnitude: np.ndarray = np.asarray(
            ureg.Quantity(np.asarray(quantity.value), quantity.units)
            .to(target_units)
            .magnitude
        )

    return PhysicalQuantity(
        value=_restore_scalar(converted_magnitude, quantity.value),
        units=target_units,
    )
