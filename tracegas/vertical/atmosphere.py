import logging
from collections.abc import Iterator
from typing import Final

import numpy as np
import xarray as xr

from tracegas.basic_types import (
    LayerDimension,
    LevelDimension,
    MetLayerDimension,
    MetLevelDimension,
)
from tracegas.buffers import TaggedArray, ingest
from tracegas.errors import ConstructionError, DimensionError, ShapeMismatchError
from tracegas.material.elements import (
    AtmosphereElement,
    Capability,
    any_matches_capability,
    elements_with_capability,
)
from tracegas.material.gases.gas_absorber import GasAbsorber
from tracegas.material.gases.molecular_metrics import specific_humidity_to_h2o_vmr
from tracegas.units import (
    DimensionClass,
    PhysicalQuantity,
    convert,
    dimension_class_of,
    is_absolute_temperature,
)
from tracegas.vertical.altitude import (
    AltitudeAndGravity,
    calculate_altitude_and_gravity_profiles,
)
from tracegas.vertical.layers import (
    LAYER_SUFFIX,
    LEVEL_SUFFIX,
    LayeredGrid,
    LayeredProfile,
    interpolate_to_pressures,
)

logger = logging.getLogger(__name__)

RETRIEVAL_GRID_NAME: Final[str] = "pressure"
MET_GRID_NAME: Final[str] = "met_pressure"
MET_PROFILE_NAMES: Final[tuple[str, ...]] = (
    "temperature",
    "specific_humidity",
    "altitude",
    "gravity",
)


def _require_units_of_class(
    argument_name: str, units: str, expected_class: DimensionClass
) -> None:
    try:
        units_class: DimensionClass = dimension_class_of(units)
    except DimensionError as error:
        raise ConstructionError(f"Unreadable {argument_name} {units!r}.") from error

    if units_class is not expected_class:
        raise ConstructionError(
            f"{argument_name} must be {expected_class.name.lower()} units, "
            f"got {units!r} ({units_class.name.lower()})."
        )


class EarthAtmosphere:
    """
    The physical state of an atmosphere on two independent pressure grids:

    - the retrieval grid, on which retrieved quantities (gas VMRs) live, and
    - the meteorological (MET) grid, which carries temperature, specific
      humidity, altitude and gravity.

    Level counts and units are fixed at construction; every buffer starts
    zero-filled and is edited in place (see `tracegas.buffers.ingest`).
    Layer buffers are not derived automatically: call `calculate_layers`
    after changing levels.

    Elements are kept in insertion order, and downstream code selects them
    by capability rather than by type.
    """

    def __init__(
        self,
        number_of_retrieval_levels: int,
        number_of_met_levels: int,
        dtype: np.dtype | str = np.float64,
        retrieval_pressure_units: str = "Pa",
        met_pressure_units: str = "Pa",
        temperature_units: str = "K",
        specific_humidity_units: str = "dimensionless",
        altitude_units: str = "m",
        gravity_units: str = "m/s^2",
    ):
        _require_units_of_class(
            "retrieval_pressure_units", retrieval_pressure_units, DimensionClass.PRESSURE
        )
        _require_units_of_class(
            "met_pressure_units", met_pressure_units, DimensionClass.PRESSURE
        )
        _require_units_of_class(
            "temperature_units", temperature_units, DimensionClass.TEMPERATURE
        )
        if not is_absolute_temperature(temperature_units):
            raise ConstructionError(
                f"temperature_units must be an absolute scale, got {temperature_units!r}."
            )
        _require_units_of_class(
            "specific_humidity_units",
            specific_humidity_units,
            DimensionClass.DIMENSIONLESS,
        )
        _require_units_of_class("altitude_units", altitude_units, DimensionClass.LENGTH)
        _require_units_of_class(
            "gravity_units", gravity_units, DimensionClass.ACCELERATION
        )

        self._retrieval_grid: LayeredGrid = LayeredGrid(
            RETRIEVAL_GRID_NAME, number_of_retrieval_levels, retrieval_pressure_units, dtype
        )
        self._met_grid: LayeredGrid = LayeredGrid(
            MET_GRID_NAME, number_of_met_levels, met_pressure_units, dtype
        )

        met_profile_units: dict[str, str] = {
            "temperature": temperature_units,
            "specific_humidity": specific_humidity_units,
            "altitude": altitude_units,
            "gravity": gravity_units,
        }
        self._met_profiles: dict[str, LayeredProfile] = {
            profile_name: LayeredProfile(
                profile_name, number_of_met_levels, met_profile_units[profile_name], dtype
            )
            for profile_name in MET_PROFILE_NAMES
        }

        self._elements: list[AtmosphereElement] = []

    @property
    def retrieval_grid(self) -> LayeredGrid:
        return self._retrieval_grid

    @property
    def met_grid(self) -> LayeredGrid:
        return self._met_grid

    @property
    def temperature(self) -> LayeredProfile:
        return self._met_profiles["temperature"]

    @property
    def specific_humidity(self) -> LayeredProfile:
        return self._met_profiles["specific_humidity"]

    @property
    def altitude(self) -> LayeredProfile:
        return self._met_profiles["altitude"]

    @property
    def gravity(self) -> LayeredProfile:
        return self._met_profiles["gravity"]

    @property
    def number_of_retrieval_levels(self) -> int:
        return self._retrieval_grid.number_of_levels

    @property
    def number_of_retrieval_layers(self) -> int:
        return self._retrieval_grid.number_of_layers

    @property
    def number_of_met_levels(self) -> int:
        return self._met_grid.number_of_levels

    @property
    def number_of_met_layers(self) -> int:
        return self._met_grid.number_of_layers

    def profiles(self) -> Iterator[LayeredProfile]:
        yield self._retrieval_grid
        yield self._met_grid
        yield from self._met_profiles.values()

    def get_field(self, field_name: str) -> TaggedArray:
        for profile in self.profiles():
            if field_name in (
                f"{profile.name}{LEVEL_SUFFIX}",
                f"{profile.name}{LAYER_SUFFIX}",
            ):
                return profile.get_field(field_name)

        raise KeyError(f"EarthAtmosphere has no field {field_name!r}.")

    @property
    def elements(self) -> tuple[AtmosphereElement, ...]:
        return tuple(self._elements)

    def add_element(self, element: AtmosphereElement) -> None:
        if not isinstance(element, AtmosphereElement):
            raise TypeError(
                f"Only atmosphere elements can be added, got {type(element).__name__}."
            )

        if isinstance(element, GasAbsorber):
            if element.number_of_levels != self.number_of_retrieval_levels:
                raise ShapeMismatchError(
                    f"Gas absorber {element.name!r} has {element.number_of_levels} VMR levels; "
                    f"the retrieval grid has {self.number_of_retrieval_levels}."
                )
            if any(
                isinstance(held_element, GasAbsorber) and held_element.name == element.name
                for held_element in self._elements
            ):
                raise ConstructionError(
                    f"This atmosphere already carries a gas absorber named {element.name!r}."
                )

        self._elements.append(element)

    def remove_element(self, element: AtmosphereElement) -> None:
        """Remove the first occurrence of this exact element object."""
        for index, held_element in enumerate(self._elements):
            if held_element is element:
                del self._elements[index]
                return

        raise ValueError(f"{element!r} is not part of this atmosphere.")

    def has_capability(self, capability: Capability) -> bool:
        return any_matches_capability(self._elements, capability)

    def elements_with_capability(
        self, capability: Capability
    ) -> list[AtmosphereElement]:
        return elements_with_capability(self._elements, capability)

    def to_dataset(self) -> xr.Dataset:
        data_variables: dict[str, xr.DataArray] = {
            f"{self._retrieval_grid.name}{LEVEL_SUFFIX}": xr.DataArray(
                data=self._retrieval_grid.levels.copy(),
                dims=(LevelDimension,),
                attrs={"units": self._retrieval_grid.units},
            ),
            f"{self._retrieval_grid.name}{LAYER_SUFFIX}": xr.DataArray(
                data=self._retrieval_grid.layers.copy(),
                dims=(LayerDimension,),
                attrs={"units": self._retrieval_grid.units},
            ),
        }
        for profile in (self._met_grid, *self._met_profiles.values()):
            data_variables[f"{profile.name}{LEVEL_SUFFIX}"] = xr.DataArray(
                data=profile.levels.copy(),
                dims=(MetLevelDimension,),
                attrs={"units": profile.units},
            )
            data_variables[f"{profile.name}{LAYER_SUFFIX}"] = xr.DataArray(
                data=profile.layers.copy(),
                dims=(MetLayerDimension,),
                attrs={"units": profile.units},
            )

        gas_absorbers: list[GasAbsorber] = [
            element
            for element in elements_with_capability(self._elements, Capability.GAS_ABSORPTION)
            if isinstance(element, GasAbsorber)
        ]
        for element in gas_absorbers:
            data_variables[f"{element.name}_vmr{LEVEL_SUFFIX}"] = xr.DataArray(
                data=np.array(element.vmr_levels),
                dims=(LevelDimension,),
                attrs={"units": element.vmr_units},
            )

        return xr.Dataset(
            data_vars=data_variables,
            attrs={
                "elements": ", ".join(
                    getattr(element, "name", element.kind.value)
                    for element in self._elements
                )
            },
        )

    def __repr__(self) -> str:
        return (
            f"EarthAtmosphere(number_of_retrieval_levels={self.number_of_retrieval_levels}, "
            f"number_of_met_levels={self.number_of_met_levels}, "
            f"elements={list(self._elements)!r})"
        )


def calculate_layers(atmosphere: EarthAtmosphere) -> None:
    """
    Overwrite every layer buffer with the midpoints of its level buffer.
    This is the only place layers are derived; nothing calls it implicitly.
    """
    for profile in atmosphere.profiles():
        profile.calculate_layers()


def met_profile_on_retrieval_grid(
    atmosphere: EarthAtmosphere, profile_name: str
) -> PhysicalQuantity:
    """
    Interpolate a MET-grid level profile (by name, e.g. "temperature") onto
    the retrieval pressure levels, linearly in log-pressure.
    """
    profile: LayeredProfile = _met_profile_by_name(atmosphere, profile_name)

    met_pressures_in_retrieval_units: np.ndarray = np.asarray(
        convert(
            PhysicalQuantity(atmosphere.met_grid.levels, atmosphere.met_grid.units),
            atmosphere.retrieval_grid.units,
        ).value
    )

    return PhysicalQuantity(
        value=interpolate_to_pressures(
            met_pressures_in_retrieval_units,
            profile.levels,
            atmosphere.retrieval_grid.levels,
        ),
        units=profile.units,
    )


def _met_profile_by_name(atmosphere: EarthAtmosphere, profile_name: str) -> LayeredProfile:
    if profile_name not in MET_PROFILE_NAMES:
        raise KeyError(
            f"{profile_name!r} is not a MET profile; choose from {MET_PROFILE_NAMES}."
        )

    return getattr(atmosphere, profile_name)


def h2o_vmr_levels(atmosphere: EarthAtmosphere) -> np.ndarray:
    """Water vapour VMR (relative to dry air) on the MET levels."""
    specific_humidities: np.ndarray = np.asarray(
        convert(
            PhysicalQuantity(
                atmosphere.specific_humidity.levels, atmosphere.specific_humidity.units
            ),
            "dimensionless",
        ).value
    )

    return specific_humidity_to_h2o_vmr(specific_humidities)


def calculate_altitude_and_gravity(
    atmosphere: EarthAtmosphere,
    latitude_in_degrees: float,
    surface_altitude: PhysicalQuantity = PhysicalQuantity(0.0, "m"),
) -> None:
    """
    Fill the altitude and gravity level buffers from the MET pressure,
    temperature and specific humidity levels by hydrostatic integration
    from the surface (the last MET level) upward.
    """
    met_pressures_in_Pa: np.ndarray = np.asarray(
        convert(
            PhysicalQuantity(atmosphere.met_grid.levels, atmosphere.met_grid.units), "Pa"
        ).value
    )
    temperatures_in_K: np.ndarray = np.asarray(
        convert(
            PhysicalQuantity(atmosphere.temperature.levels, atmosphere.temperature.units),
            "K",
        ).value
    )
    specific_humidities: np.ndarray = np.asarray(
        convert(
            PhysicalQuantity(
                atmosphere.specific_humidity.levels, atmosphere.specific_humidity.units
            ),
            "dimensionless",
        ).value
    )
    surface_altitude_in_m: float = float(convert(surface_altitude, "m").value)

    altitudes_and_gravities: AltitudeAndGravity = calculate_altitude_and_gravity_profiles(
        met_pressures_in_Pa,
        temperatures_in_K,
        specific_humidities,
        latitude_in_degrees,
        surface_altitude_in_m,
    )

    ingest(
        atmosphere,
        "altitude_levels",
        PhysicalQuantity(altitudes_and_gravities.altitudes_in_m, "m"),
    )
    ingest(
        atmosphere,
        "gravity_levels",
        PhysicalQuantity(altitudes_and_gravities.gravities_in_SI, "m/s^2"),
    )
    logger.debug(
        "Integrated %d MET levels from %.1f m at latitude %.2f; top altitude %.1f m.",
        atmosphere.number_of_met_levels,
        surface_altitude_in_m,
        latitude_in_degrees,
        altitudes_and_gravities.altitudes_in_m[0],
    )
