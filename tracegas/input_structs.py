import logging
from pathlib import Path
from typing import NamedTuple, Optional

import msgspec
import numpy as np

from tracegas.basic_types import (
    LatitudeValue,
    MixingRatioValue,
    NonnegativeValue,
    NumberOfLevels,
    NumericPrecision,
    PositiveValue,
    PressureValue,
    TemperatureValue,
    UnitString,
)
from tracegas.buffers import ingest
from tracegas.errors import ConstructionError, ShapeMismatchError
from tracegas.material.absorbing.spectroscopy import (
    SpectroscopyTable,
    load_spectroscopy_table,
)
from tracegas.material.gases.gas_absorber import GasAbsorber
from tracegas.material.scattering.rayleigh import RayleighScattering
from tracegas.spectrum.windows import (
    SpectralWindow,
    build_constant_resolution_grid,
    build_evenly_spaced_grid,
)
from tracegas.units import PhysicalQuantity
from tracegas.vertical.atmosphere import (
    EarthAtmosphere,
    calculate_altitude_and_gravity,
    calculate_layers,
)

logger = logging.getLogger(__name__)

MetadataValue = str | int | float | bool


class EarthAtmosphereInputs(msgspec.Struct, kw_only=True):
    number_of_retrieval_levels: NumberOfLevels
    number_of_met_levels: NumberOfLevels
    numeric_precision: NumericPrecision = "float64"
    retrieval_pressure_units: UnitString = "Pa"
    met_pressure_units: UnitString = "Pa"
    temperature_units: UnitString = "K"
    specific_humidity_units: UnitString = "dimensionless"
    altitude_units: UnitString = "m"
    gravity_units: UnitString = "m/s^2"
    retrieval_pressures: Optional[list[PressureValue]] = None
    met_pressures: Optional[list[PressureValue]] = None
    temperatures: Optional[list[TemperatureValue]] = None
    specific_humidities: Optional[list[MixingRatioValue]] = None
    latitude: Optional[LatitudeValue] = None
    surface_altitude: float = 0.0
    include_rayleigh_scattering: bool = True


class SpectralWindowInputs(msgspec.Struct, kw_only=True):
    name: str
    lower_limit: float
    upper_limit: float
    spectral_units: UnitString
    spacing: Optional[PositiveValue] = None
    resolving_power: Optional[PositiveValue] = None
    buffer: NonnegativeValue = 0.0
    reference_point: Optional[float] = None


class SpectroscopyTableInputs(msgspec.Struct, kw_only=True):
    filepath: str
    scale_factor: PositiveValue = 1.0


class GasAbsorberInputs(msgspec.Struct, kw_only=True):
    name: str
    spectroscopy: SpectroscopyTableInputs
    vmr_units: UnitString
    vmr_levels: Optional[list[NonnegativeValue]] = None
    uniform_vmr: Optional[NonnegativeValue] = None


class ModelInputs(msgspec.Struct, kw_only=True):
    atmosphere: EarthAtmosphereInputs
    spectral_windows: list[SpectralWindowInputs] = msgspec.field(default_factory=list)
    gas_absorbers: list[GasAbsorberInputs] = msgspec.field(default_factory=list)
    metadata: dict[str, MetadataValue] = msgspec.field(default_factory=dict)


class Model(NamedTuple):
    atmosphere: EarthAtmosphere
    spectral_windows: tuple[SpectralWindow, ...]
    metadata: dict[str, MetadataValue]


def load_model_inputs(toml_filepath: str | Path) -> ModelInputs:
    with open(toml_filepath, "rb") as input_toml_file:
        return msgspec.toml.decode(input_toml_file.read(), type=ModelInputs)


def build_earth_atmosphere(
    atmosphere_inputs: EarthAtmosphereInputs,
) -> EarthAtmosphere:
    """
    Build a zero-filled atmosphere, then fill whichever profiles the inputs
    provide. Layers are calculated once everything is in; altitude and
    gravity are integrated when a latitude is given.
    """
    atmosphere: EarthAtmosphere = EarthAtmosphere(
        number_of_retrieval_levels=atmosphere_inputs.number_of_retrieval_levels,
        number_of_met_levels=atmosphere_inputs.number_of_met_levels,
        dtype=atmosphere_inputs.numeric_precision,
        retrieval_pressure_units=atmosphere_inputs.retrieval_pressure_units,
        met_pressure_units=atmosphere_inputs.met_pressure_units,
        temperature_units=atmosphere_inputs.temperature_units,
        specific_humidity_units=atmosphere_inputs.specific_humidity_units,
        altitude_units=atmosphere_inputs.altitude_units,
        gravity_units=atmosphere_inputs.gravity_units,
    )

    provided_levels: dict[str, tuple[Optional[list[float]], str]] = {
        "pressure_levels": (
            atmosphere_inputs.retrieval_pressures,
            atmosphere_inputs.retrieval_pressure_units,
        ),
        "met_pressure_levels": (
            atmosphere_inputs.met_pressures,
            atmosphere_inputs.met_pressure_units,
        ),
        "temperature_levels": (
            atmosphere_inputs.temperatures,
            atmosphere_inputs.temperature_units,
        ),
        "specific_humidity_levels": (
            atmosphere_inputs.specific_humidities,
            atmosphere_inputs.specific_humidity_units,
        ),
    }
    for field_name, (level_values, units) in provided_levels.items():
        if level_values is not None:
            ingest(atmosphere, field_name, PhysicalQuantity(np.asarray(level_values), units))

    if atmosphere_inputs.latitude is not None:
        calculate_altitude_and_gravity(
            atmosphere,
            atmosphere_inputs.latitude,
            PhysicalQuantity(
                atmosphere_inputs.surface_altitude, atmosphere_inputs.altitude_units
            ),
        )

    calculate_layers(atmosphere)

    if atmosphere_inputs.include_rayleigh_scattering:
        atmosphere.add_element(RayleighScattering())

    return atmosphere


def build_spectral_window(window_inputs: SpectralWindowInputs) -> SpectralWindow:
    if (window_inputs.spacing is None) == (window_inputs.resolving_power is None):
        raise ConstructionError(
            f"Spectral window {window_inputs.name!r} needs exactly one of "
            "'spacing' or 'resolving_power'."
        )

    if window_inputs.spacing is not None:
        high_res_grid: np.ndarray = build_evenly_spaced_grid(
            window_inputs.lower_limit,
            window_inputs.upper_limit,
            window_inputs.spacing,
            window_inputs.buffer,
        )
    else:
        high_res_grid: np.ndarray = build_constant_resolution_grid(
            window_inputs.lower_limit - window_inputs.buffer,
            window_inputs.upper_limit + window_inputs.buffer,
            window_inputs.resolving_power,
        )

    return SpectralWindow(
        name=window_inputs.name,
        lower_limit=window_inputs.lower_limit,
        upper_limit=window_inputs.upper_limit,
        high_res_grid=high_res_grid,
        spectral_units=window_inputs.spectral_units,
        reference_point=(
            window_inputs.reference_point
            if window_inputs.reference_point is not None
            else 0.5 * (window_inputs.lower_limit + window_inputs.upper_limit)
        ),
    )


def build_gas_absorber(
    absorber_inputs: GasAbsorberInputs,
    spectroscopy: SpectroscopyTable,
    number_of_retrieval_levels: int,
) -> GasAbsorber:
    if (absorber_inputs.vmr_levels is None) == (absorber_inputs.uniform_vmr is None):
        raise ConstructionError(
            f"Gas absorber {absorber_inputs.name!r} needs exactly one of "
            "'vmr_levels' or 'uniform_vmr'."
        )

    if absorber_inputs.vmr_levels is not None:
        vmr_levels: np.ndarray = np.array(absorber_inputs.vmr_levels, dtype=np.float64)
        if vmr_levels.size != number_of_retrieval_levels:
            raise ShapeMismatchError(
                f"Gas absorber {absorber_inputs.name!r} has {vmr_levels.size} VMR levels "
                f"for {number_of_retrieval_levels} retrieval levels."
            )
    else:
        vmr_levels: np.ndarray = np.full(
            number_of_retrieval_levels, absorber_inputs.uniform_vmr, dtype=np.float64
        )

    return GasAbsorber(
        name=absorber_inputs.name,
        spectroscopy=spectroscopy,
        vmr_levels=vmr_levels,
        vmr_units=absorber_inputs.vmr_units,
    )


def build_model(
    model_inputs: ModelInputs, base_directory: Optional[str | Path] = None
) -> Model:
    """
    Assemble the atmosphere, its gas absorbers and the spectral windows.
    Relative spectroscopy paths are taken from `base_directory` (the current
    directory by default). Absorbers naming the same file and scale factor
    share one loaded table.
    """
    base_directory = Path(base_directory) if base_directory is not None else Path.cwd()

    atmosphere: EarthAtmosphere = build_earth_atmosphere(model_inputs.atmosphere)

    loaded_tables: dict[tuple[Path, float], SpectroscopyTable] = {}
    for absorber_inputs in model_inputs.gas_absorbers:
        table_path: Path = (base_directory / absorber_inputs.spectroscopy.filepath).resolve()
        table_key: tuple[Path, float] = (
            table_path,
            absorber_inputs.spectroscopy.scale_factor,
        )

        if table_key not in loaded_tables:
            loaded_tables[table_key] = load_spectroscopy_table(
                table_path, scale_factor=absorber_inputs.spectroscopy.scale_factor
            )

        atmosphere.add_element(
            build_gas_absorber(
                absorber_inputs,
                loaded_tables[table_key],
                atmosphere.number_of_retrieval_levels,
            )
        )

    spectral_windows: tuple[SpectralWindow, ...] = tuple(
        build_spectral_window(window_inputs)
        for window_inputs in model_inputs.spectral_windows
    )

    logger.debug(
        "Built model with %d elements, %d spectral windows and %d spectroscopy tables.",
        len(atmosphere.elements),
        len(spectral_windows),
        len(loaded_tables),
    )

    return Model(
        atmosphere=atmosphere,
        spectral_windows=spectral_windows,
        metadata=dict(model_inputs.metadata),
    )


def build_model_from_toml(toml_filepath: str | Path) -> Model:
    toml_filepath = Path(toml_filepath)

    return build_model(
        load_model_inputs(toml_filepath), base_directory=toml_filepath.parent
    )
