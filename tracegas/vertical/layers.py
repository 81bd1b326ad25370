from functools import singledispatch
from typing import Final

import numpy as np
import xarray as xr

from tracegas.buffers import TaggedArray
from tracegas.errors import ConstructionError, ShapeMismatchError
from tracegas.units import DimensionClass, PhysicalQuantity, dimension_class_of

LEVEL_SUFFIX: Final[str] = "_levels"
LAYER_SUFFIX: Final[str] = "_layers"


def _midpoints(levels: np.ndarray) -> np.ndarray:
    if np.shape(levels)[0] < 2:
        raise ShapeMismatchError("At least two levels are needed to form a layer.")

    return (levels[:-1] + levels[1:]) / 2


@singledispatch
def levels_to_layers(levels):
    """
    Layer values are the arithmetic midpoints of adjacent levels:
    layer[i] = (level[i] + level[i+1]) / 2. Units, when present, are kept.
    """
    return _midpoints(np.asarray(levels))


@levels_to_layers.register
def _(levels: PhysicalQuantity) -> PhysicalQuantity:
    return PhysicalQuantity(value=_midpoints(np.asarray(levels.value)), units=levels.units)


@levels_to_layers.register
def _(levels: xr.DataArray) -> xr.DataArray:
    level_dimension: str = levels.dims[0]
    layer_dimension: str = level_dimension.replace("level", "layer")

    return xr.DataArray(
        data=_midpoints(levels.to_numpy()),
        dims=(layer_dimension, *levels.dims[1:]),
        name=levels.name.replace("level", "layer") if levels.name else None,
        attrs=levels.attrs,
    )


class LayeredProfile:
    """
    A level profile and its layer midpoints. The header (name, counts,
    units) is fixed at construction, and so are the two buffer handles; only
    their contents change. Layers are not kept in sync with levels: call
    `calculate_layers` after editing the levels.
    """

    __slots__ = ("_name", "_units", "_levels", "_layers")

    def __init__(
        self,
        name: str,
        number_of_levels: int,
        units: str,
        dtype: np.dtype | str = np.float64,
    ):
        if number_of_levels < 2:
            raise ConstructionError(
                f"Profile {name!r} needs at least two levels, got {number_of_levels}."
            )

        self._name: str = name
        self._units: str = units
        self._levels: np.ndarray = np.zeros(number_of_levels, dtype=dtype)
        self._layers: np.ndarray = np.zeros(number_of_levels - 1, dtype=dtype)

    @property
    def name(self) -> str:
        return self._name

    @property
    def units(self) -> str:
        return self._units

    @property
    def levels(self) -> np.ndarray:
        return self._levels

    @property
    def layers(self) -> np.ndarray:
        return self._layers

    @property
    def number_of_levels(self) -> int:
        return self._levels.shape[0]

    @property
    def number_of_layers(self) -> int:
        return self._layers.shape[0]

    def calculate_layers(self) -> None:
        self._layers[:] = levels_to_layers(self._levels)

    def get_field(self, field_name: str) -> TaggedArray:
        if field_name in ("levels", f"{self._name}{LEVEL_SUFFIX}"):
            return TaggedArray(self._levels, self._units)
        if field_name in ("layers", f"{self._name}{LAYER_SUFFIX}"):
            return TaggedArray(self._layers, self._units)

        raise KeyError(f"Profile {self._name!r} has no field {field_name!r}.")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self._name!r}, "
            f"number_of_levels={self.number_of_levels}, units={self._units!r})"
        )


class LayeredGrid(LayeredProfile):
    """A pressure-indexed level grid; index 0 is the top of the atmosphere."""

    __slots__ = ()

    def __init__(
        self,
        name: str,
        number_of_levels: int,
        units: str,
        dtype: np.dtype | str = np.float64,
    ):
        if dimension_class_of(units) is not DimensionClass.PRESSURE:
            raise ConstructionError(
                f"Grid {name!r} must be in pressure units, got {units!r}."
            )

        super().__init__(name, number_of_levels, units, dtype)

    def is_monotonic(self) -> bool:
        level_differences: np.ndarray = np.diff(self._levels)

        return bool(np.all(level_differences > 0) or np.all(level_differences < 0))


def interpolate_to_pressures(
    source_pressures: np.ndarray,
    values: np.ndarray,
    target_pressures: np.ndarray,
) -> np.ndarray:
    """
    Linear interpolation in log-pressure. Targets beyond either end of the
    source grid take the nearest end value. Both pressure arrays must share
    units.
    """
    log_source_pressures: np.ndarray = np.log(np.asarray(source_pressures))
    source_values: np.ndarray = np.asarray(values)

    if log_source_pressures[0] > log_source_pressures[-1]:
        log_source_pressures = log_source_pressures[::-1]
        source_values = source_values[::-1]

    return np.interp(np.log(np.asarray(target_pressures)), log_source_pressures, source_values)
