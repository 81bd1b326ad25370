"""
Tabulated absorption cross sections on a (spectral, broadener VMR,
temperature, pressure) grid.

The temperature axis is not shared: every pressure point carries its own
ascending temperature sub-axis, so the table is curvilinear in the
(pressure, temperature) plane. Lookups bracket pressure first, then bracket
temperature separately inside each of the two pressure columns, and finish
with ordinary linear brackets on the broadener and spectral axes.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, NamedTuple, Optional

import numpy as np
import xarray as xr

from tracegas.basic_types import (
    BroadenerDimension,
    PressureDimension,
    SpectralDimension,
    TemperatureIndexDimension,
)
from tracegas.errors import BoundsError, ConstructionError, DimensionError
from tracegas.units import (
    SPECTRAL_DIMENSION_CLASSES,
    DimensionClass,
    PhysicalQuantity,
    convert_spectral,
    dimension_class_of,
    is_absolute_temperature,
)
from tracegas.xarray_functional_wrappers import convert_units

logger = logging.getLogger(__name__)

SPECTRAL_DIMENSION_NAME: str = SpectralDimension
BROADENER_DIMENSION_NAME: str = BroadenerDimension
PRESSURE_DIMENSION_NAME: str = PressureDimension
TEMPERATURE_DIMENSION_NAME: str = TemperatureIndexDimension

CROSS_SECTION_DIMENSIONS: tuple[str, ...] = (
    SPECTRAL_DIMENSION_NAME,
    BROADENER_DIMENSION_NAME,
    TEMPERATURE_DIMENSION_NAME,
    PRESSURE_DIMENSION_NAME,
)


class AxisBrackets(NamedTuple):
    lower_indices: np.ndarray[np.intp]
    upper_indices: np.ndarray[np.intp]
    fractions: np.ndarray[np.float64]


def _bracket_ascending_axis(axis: np.ndarray, values: np.ndarray) -> AxisBrackets:
    lower_indices: np.ndarray = np.clip(
        np.searchsorted(axis, values, side="right") - 1, 0, axis.size - 2
    )
    upper_indices: np.ndarray = lower_indices + 1

    fractions: np.ndarray = (values - axis[lower_indices]) / (
        axis[upper_indices] - axis[lower_indices]
    )

    return AxisBrackets(lower_indices, upper_indices, fractions)


def bracket_axis(axis: np.ndarray, values: float | np.ndarray) -> AxisBrackets:
    """
    Bracketing indices and interpolation fractions of `values` in a strictly
    monotonic `axis` (either direction). A value sitting exactly on an axis
    point gets a fraction of exactly 0, or exactly 1 on the last point.
    Values are assumed to be within range.
    """
    values = np.atleast_1d(np.asarray(values, dtype=np.float64))

    if axis.size == 1:
        zeros: np.ndarray = np.zeros(values.shape, dtype=np.intp)
        return AxisBrackets(zeros, zeros, np.zeros(values.shape))

    if axis[0] > axis[-1]:
        return _bracket_ascending_axis(-axis, -values)

    return _bracket_ascending_axis(axis, values)


def axis_limits(axis: np.ndarray) -> tuple[float, float]:
    return float(min(axis[0], axis[-1])), float(max(axis[0], axis[-1]))


def check_within_axis(axis: np.ndarray, values: float | np.ndarray, axis_name: str) -> None:
    lower_limit, upper_limit = axis_limits(axis)
    values = np.asarray(values, dtype=np.float64)

    outside: np.ndarray = ~((values >= lower_limit) & (values <= upper_limit))
    if np.any(outside):
        raise BoundsError(
            f"{axis_name} value(s) {values[outside] if values.ndim else values} "
            f"outside the table range [{lower_limit}, {upper_limit}]."
        )


def _is_strictly_monotonic(axis: np.ndarray) -> bool:
    differences: np.ndarray = np.diff(axis)

    return bool(np.all(differences > 0) or np.all(differences < 0))


def _require_dimension_class(
    label: str, units: str, allowed_classes: set[DimensionClass] | frozenset[DimensionClass]
) -> DimensionClass:
    try:
        dimension_class: DimensionClass = dimension_class_of(units)
    except DimensionError as error:
        raise ConstructionError(f"Unreadable {label} units {units!r}.") from error

    if dimension_class not in allowed_classes:
        raise ConstructionError(
            f"{label} units {units!r} are {dimension_class.name.lower()}, expected "
            f"{' or '.join(sorted(allowed.name.lower() for allowed in allowed_classes))}."
        )

    return dimension_class


class SpectroscopyTable:
    """
    Read-only after construction: the arrays are private copies flagged
    non-writeable, so a single table can be shared by any number of gas
    absorbers and concurrent readers. A scale factor is multiplied into the
    stored cross sections once, here, and never again at query time.
    """

    def __init__(
        self,
        spectral: np.ndarray,
        spectral_units: str,
        broadener_vmrs: np.ndarray,
        pressures: np.ndarray,
        pressure_units: str,
        temperatures: np.ndarray,
        temperature_units: str,
        cross_section: np.ndarray,
        cross_section_units: str,
        scale_factor: float = 1.0,
        file_name: str = "",
        gas_name: str = "",
        broadener_units: str = "dimensionless",
    ):
        self.spectral_dimension_class: DimensionClass = _require_dimension_class(
            "Spectral axis", spectral_units, SPECTRAL_DIMENSION_CLASSES
        )
        _require_dimension_class(
            "Broadener axis", broadener_units, {DimensionClass.DIMENSIONLESS}
        )
        _require_dimension_class("Pressure axis", pressure_units, {DimensionClass.PRESSURE})
        _require_dimension_class(
            "Temperature axis", temperature_units, {DimensionClass.TEMPERATURE}
        )
        if not is_absolute_temperature(temperature_units):
            raise ConstructionError(
                f"Temperature axis units {temperature_units!r} are not an absolute scale."
            )
        _require_dimension_class(
            "Cross section", cross_section_units, {DimensionClass.AREA_PER_MOLECULE}
        )

        spectral = np.array(spectral, dtype=np.float64)
        broadener_vmrs = np.array(broadener_vmrs, dtype=np.float64)
        pressures = np.array(pressures, dtype=np.float64)
        temperatures = np.array(temperatures, dtype=np.float64)
        cross_section = np.array(cross_section, dtype=np.float64) * scale_factor

        if spectral.ndim != 1 or spectral.size < 2 or not _is_strictly_monotonic(spectral):
            raise ConstructionError(
                "The spectral axis must be one-dimensional, strictly monotonic, "
                "and hold at least two points."
            )
        if broadener_vmrs.ndim != 1 or broadener_vmrs.size < 1:
            raise ConstructionError("The broadener axis must be one-dimensional and non-empty.")
        if broadener_vmrs.size > 1 and np.any(np.diff(broadener_vmrs) <= 0):
            raise ConstructionError("The broadener axis must be strictly ascending.")
        if pressures.ndim != 1 or pressures.size < 2 or not _is_strictly_monotonic(pressures):
            raise ConstructionError(
                "The pressure axis must be one-dimensional, strictly monotonic, "
                "and hold at least two points."
            )
        if temperatures.ndim != 2 or temperatures.shape[0] != pressures.size:
            raise ConstructionError(
                f"Temperatures must have shape (number of pressures, number of temperatures) = "
                f"({pressures.size}, N), got {temperatures.shape}."
            )
        if temperatures.shape[1] < 2 or np.any(np.diff(temperatures, axis=1) <= 0):
            raise ConstructionError(
                "Every pressure point needs a strictly ascending temperature axis "
                "of at least two points."
            )

        expected_shape: tuple[int, ...] = (
            spectral.size,
            broadener_vmrs.size,
            temperatures.shape[1],
            pressures.size,
        )
        if cross_section.shape != expected_shape:
            raise ConstructionError(
                f"Cross section shape {cross_section.shape} does not match the axes "
                f"(spectral, broadener, temperature, pressure) = {expected_shape}."
            )

        for array in (spectral, broadener_vmrs, pressures, temperatures, cross_section):
            array.flags.writeable = False

        self.spectral: np.ndarray = spectral
        self.spectral_units: str = spectral_units
        self.broadener_vmrs: np.ndarray = broadener_vmrs
        self.broadener_units: str = broadener_units
        self.pressures: np.ndarray = pressures
        self.pressure_units: str = pressure_units
        self.temperatures: np.ndarray = temperatures
        self.temperature_units: str = temperature_units
        self.cross_section: np.ndarray = cross_section
        self.cross_section_units: str = cross_section_units
        self.scale_factor: float = scale_factor
        self.file_name: str = file_name
        self.gas_name: str = gas_name

    @property
    def shape(self) -> tuple[int, ...]:
        return self.cross_section.shape

    @property
    def broadener_dependent(self) -> bool:
        return self.broadener_vmrs.size > 1

    def __repr__(self) -> str:
        return (
            f"SpectroscopyTable(gas_name={self.gas_name!r}, file_name={self.file_name!r}, "
            f"shape={self.shape})"
        )

    def clamp_pressure(self, pressure: float) -> float:
        lower_limit, upper_limit = axis_limits(self.pressures)
        clamped_pressure: float = float(np.clip(pressure, lower_limit, upper_limit))

        if clamped_pressure != pressure:
            logger.debug(
                "Pressure %g %s clamped to %g for %s table.",
                pressure,
                self.pressure_units,
                clamped_pressure,
                self.gas_name,
            )

        return clamped_pressure

    def _temperature_brackets_in_column(
        self, pressure_index: int, temperature: float
    ) -> AxisBrackets:
        column_temperatures: np.ndarray = self.temperatures[pressure_index]
        check_within_axis(
            column_temperatures,
            temperature,
            f"Temperature (at table pressure {self.pressures[pressure_index]} {self.pressure_units})",
        )

        return bracket_axis(column_temperatures, temperature)

    def lookup_spectrum(
        self,
        pressure: float,
        temperature: float,
        broadener_vmr: float,
        spectral_points: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Cross sections at one (pressure, temperature, broadener VMR) state
        for many spectral points, all in the table's own units. Without
        `spectral_points`, every tabulated spectral point is returned.

        Pressure is clamped to the table range. Temperature, broadener VMR,
        and spectral points outside their axes raise BoundsError. A
        single-valued broadener axis makes the table broadener-independent.
        """
        if np.isnan(pressure):
            raise BoundsError("Pressure is NaN.")
        if spectral_points is None:
            spectral_points = self.spectral
        spectral_points = np.atleast_1d(np.asarray(spectral_points, dtype=np.float64))

        check_within_axis(self.spectral, spectral_points, "Spectral")
        if self.broadener_dependent:
            check_within_axis(self.broadener_vmrs, broadener_vmr, "Broadener VMR")

        pressure_brackets: AxisBrackets = bracket_axis(
            self.pressures, self.clamp_pressure(pressure)
        )
        pressure_fraction: float = pressure_brackets.fractions[0]
        pressure_columns: list[tuple[int, float]] = [
            (int(pressure_brackets.lower_indices[0]), 1.0 - pressure_fraction),
            (int(pressure_brackets.upper_indices[0]), pressure_fraction),
        ]
        # a column with zero weight need not bracket the temperature
        contributing_columns: list[tuple[int, float]] = [
            (pressure_index, pressure_weight)
            for pressure_index, pressure_weight in pressure_columns
            if pressure_weight != 0.0
        ]

        temperature_brackets_by_column: list[AxisBrackets] = [
            self._temperature_brackets_in_column(pressure_index, temperature)
            for pressure_index, _ in contributing_columns
        ]

        broadener_brackets: AxisBrackets = bracket_axis(self.broadener_vmrs, broadener_vmr)
        broadener_fraction: float = broadener_brackets.fractions[0]
        broadener_corners: list[tuple[int, float]] = [
            (int(broadener_brackets.lower_indices[0]), 1.0 - broadener_fraction),
            (int(broadener_brackets.upper_indices[0]), broadener_fraction),
        ]

        spectral_brackets: AxisBrackets = bracket_axis(self.spectral, spectral_points)
        lower_spectral_weights: np.ndarray = 1.0 - spectral_brackets.fractions
        upper_spectral_weights: np.ndarray = spectral_brackets.fractions

        cross_sections: np.ndarray = np.zeros(spectral_points.shape)
        for (pressure_index, pressure_weight), temperature_brackets in zip(
            contributing_columns, temperature_brackets_by_column
        ):
            temperature_fraction: float = temperature_brackets.fractions[0]
            temperature_corners: list[tuple[int, float]] = [
                (int(temperature_brackets.lower_indices[0]), 1.0 - temperature_fraction),
                (int(temperature_brackets.upper_indices[0]), temperature_fraction),
            ]

            for temperature_index, temperature_weight in temperature_corners:
                for broadener_index, broadener_weight in broadener_corners:
                    corner_weight: float = (
                        pressure_weight * temperature_weight * broadener_weight
                    )
                    if corner_weight == 0.0:
                        continue

                    spectrum_at_corner: np.ndarray = self.cross_section[
                        :, broadener_index, temperature_index, pressure_index
                    ]
                    cross_sections += corner_weight * (
                        lower_spectral_weights
                        * spectrum_at_corner[spectral_brackets.lower_indices]
                        + upper_spectral_weights
                        * spectrum_at_corner[spectral_brackets.upper_indices]
                    )

        return cross_sections

    def lookup(
        self,
        spectral_point: float,
        pressure: float,
        temperature: float,
        broadener_vmr: float,
    ) -> float:
        return float(
            self.lookup_spectrum(
                pressure, temperature, broadener_vmr, spectral_points=[spectral_point]
            )[0]
        )

    def lookup_layers(
        self,
        pressures: np.ndarray,
        temperatures: np.ndarray,
        broadener_vmrs: np.ndarray,
        spectral_points: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Cross sections with shape (number of spectral points, number of layers)."""
        layer_states = list(
            zip(
                np.atleast_1d(pressures),
                np.atleast_1d(temperatures),
                np.atleast_1d(broadener_vmrs),
                strict=True,
            )
        )
        if not layer_states:
            number_of_spectral_points: int = (
                len(self.spectral)
                if spectral_points is None
                else np.atleast_1d(spectral_points).size
            )
            return np.empty((number_of_spectral_points, 0))

        return np.stack(
            [
                self.lookup_spectrum(pressure, temperature, broadener_vmr, spectral_points)
                for pressure, temperature, broadener_vmr in layer_states
            ],
            axis=-1,
        )

    def to_table_spectral_units(self, spectral_points: PhysicalQuantity) -> np.ndarray:
        return np.asarray(convert_spectral(spectral_points, self.spectral_units).value)

    @classmethod
    def from_dataset(
        cls,
        dataset: xr.Dataset,
        scale_factor: float = 1.0,
        new_variable_units: Optional[Mapping[str, str]] = None,
        file_name: Optional[str] = None,
    ) -> "SpectroscopyTable":
        required_variables: tuple[str, ...] = (
            "spectral",
            "broadener_vmrs",
            "pressures",
            "temperatures",
            "cross_section",
        )
        missing_variables: list[str] = [
            variable_name
            for variable_name in required_variables
            if variable_name not in dataset.variables
        ]
        if missing_variables:
            raise ConstructionError(
                f"Spectroscopy dataset is missing variable(s) {missing_variables}."
            )

        for variable_name in ("spectral", "pressures", "temperatures", "cross_section"):
            if "units" not in dataset[variable_name].attrs:
                raise ConstructionError(
                    f"Spectroscopy variable {variable_name!r} declares no units."
                )

        if new_variable_units:
            dataset = convert_units(dataset, new_variable_units)

        return cls(
            spectral=dataset["spectral"].to_numpy(),
            spectral_units=dataset["spectral"].attrs["units"],
            broadener_vmrs=dataset["broadener_vmrs"].to_numpy(),
            broadener_units=dataset["broadener_vmrs"].attrs.get("units", "dimensionless"),
            pressures=dataset["pressures"].to_numpy(),
            pressure_units=dataset["pressures"].attrs["units"],
            temperatures=dataset["temperatures"]
            .transpose(PRESSURE_DIMENSION_NAME, TEMPERATURE_DIMENSION_NAME)
            .to_numpy(),
            temperature_units=dataset["temperatures"].attrs["units"],
            cross_section=dataset["cross_section"]
            .transpose(*CROSS_SECTION_DIMENSIONS)
            .to_numpy(),
            cross_section_units=dataset["cross_section"].attrs["units"],
            scale_factor=scale_factor,
            file_name=(
                file_name if file_name is not None else str(dataset.attrs.get("file_name", ""))
            ),
            gas_name=str(dataset.attrs.get("gas_name", "")),
        )

    def to_dataset(self) -> xr.Dataset:
        return xr.Dataset(
            data_vars={
                "spectral": xr.Variable(
                    (SPECTRAL_DIMENSION_NAME,),
                    self.spectral,
                    attrs={"units": self.spectral_units},
                ),
                "broadener_vmrs": xr.Variable(
                    (BROADENER_DIMENSION_NAME,),
                    self.broadener_vmrs,
                    attrs={"units": self.broadener_units},
                ),
                "pressures": xr.Variable(
                    (PRESSURE_DIMENSION_NAME,),
                    self.pressures,
                    attrs={"units": self.pressure_units},
                ),
                "temperatures": xr.Variable(
                    (PRESSURE_DIMENSION_NAME, TEMPERATURE_DIMENSION_NAME),
                    self.temperatures,
                    attrs={"units": self.temperature_units},
                ),
                "cross_section": xr.Variable(
                    CROSS_SECTION_DIMENSIONS,
                    self.cross_section,
                    attrs={"units": self.cross_section_units},
                ),
            },
            attrs={
                "file_name": self.file_name,
                "gas_name": self.gas_name,
                "applied_scale_factor": self.scale_factor,
            },
        )


def load_spectroscopy_table(
    filepath: str | Path,
    scale_factor: float = 1.0,
    new_variable_units: Optional[Mapping[str, str]] = None,
    **open_dataset_kwargs: Any,
) -> SpectroscopyTable:
    filepath = Path(filepath)
    if not filepath.is_file():
        raise FileNotFoundError(f"Spectroscopy file {filepath} does not exist.")

    with xr.open_dataset(filepath, **open_dataset_kwargs) as dataset:
        spectroscopy_table: SpectroscopyTable = SpectroscopyTable.from_dataset(
            dataset,
            scale_factor=scale_factor,
            new_variable_units=new_variable_units,
            file_name=str(dataset.attrs.get("file_name", filepath.name)),
        )

    logger.debug(
        "Loaded %s cross sections from %s with shape %s (scale factor %g).",
        spectroscopy_table.gas_name,
        filepath,
        spectroscopy_table.shape,
        scale_factor,
    )

    return spectroscopy_table
