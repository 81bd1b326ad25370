from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Optional, TypeAlias

import xarray as xr
from decopatch import DECORATED, function_decorator

from tracegas.basic_types import DimensionName
from tracegas.units import ureg

XarrayStructure: TypeAlias = xr.Dataset | xr.DataArray
CoreDimensions: TypeAlias = tuple[Optional[tuple[DimensionName, ...]], ...]


def as_core_dimensions(dimensions: CoreDimensions) -> list[tuple[DimensionName, ...]]:
    """Scalar arguments (None) have no core dimensions."""
    return [tuple(argument_dimensions or ()) for argument_dimensions in dimensions]


@dataclass
class Dimensionalize:
    """
    Lift a numpy function over xarray inputs: the named dimensions of each
    argument (None for scalars) become core dimensions of xr.apply_ufunc.
    """

    argument_dimensions: CoreDimensions
    result_dimensions: CoreDimensions
    vectorizable: bool = True

    _input_core_dimensions: list[tuple[DimensionName, ...]] = field(init=False)
    _output_core_dimensions: list[tuple[DimensionName, ...]] = field(init=False)

    def __post_init__(self):
        self._input_core_dimensions = as_core_dimensions(self.argument_dimensions)
        self._output_core_dimensions = as_core_dimensions(self.result_dimensions)

    def __call__(self, function: Callable[..., Any]):
        @wraps(function)
        def apply_ufunc_wrapper(*args, **kwargs):
            if len(args) != len(self._input_core_dimensions):
                raise TypeError(
                    f"{function.__name__} was dimensionalized for "
                    f"{len(self._input_core_dimensions)} positional arguments, got {len(args)}."
                )

            return xr.apply_ufunc(
                function,
                *args,
                kwargs=kwargs,
                input_core_dims=self._input_core_dimensions,
                output_core_dims=self._output_core_dimensions,
                vectorize=self.vectorizable,
                keep_attrs=True,
            )

        return apply_ufunc_wrapper


@function_decorator
def set_result_name_and_units(
    result_names: str | Iterable[str],
    units: str | Iterable[str],
    function=DECORATED,
) -> Callable:
    @wraps(function)
    def wrapper(*args, **kwargs):
        result = function(*args, **kwargs)

        if isinstance(result, xr.DataArray):
            result = result.rename(result_names).assign_attrs(units=units)

        elif isinstance(result, tuple):
            if any(not isinstance(dataarray, xr.DataArray) for dataarray in result):
                raise TypeError(
                    "All elements must be of type xarray DataArray. "
                    "This may be because the wrapped function is not returning a tuple of dataarrays."
                )

            if not (len(result_names) == len(units) == len(result)):
                raise ValueError(
                    "The number of variable names and units for the result of the function must be the same."
                )

            result = tuple(
                dataarray.rename(result_name).assign_attrs(units=result_unit)
                for dataarray, result_name, result_unit in zip(
                    result, result_names, units
                )
            )

        return result

    return wrapper


def convert_units(
    xarray_structure: XarrayStructure,
    new_variable_units: Mapping[str, str],
) -> XarrayStructure:
    def convert_variable(variable: xr.DataArray, units: str) -> xr.DataArray:
        return (
            variable.pint.quantify(unit_registry=ureg).pint.to(units).pint.dequantify()
        )

    if isinstance(xarray_structure, xr.DataArray):
        for variable_name, units in new_variable_units.items():
            if variable_name == xarray_structure.name:
                xarray_structure = convert_variable(xarray_structure, units)

            elif variable_name in xarray_structure.coords:
                xarray_structure = xarray_structure.assign_coords(
                    {
                        variable_name: convert_variable(
                            xarray_structure[variable_name], units
                        )
                    }
                )

            else:
                raise ValueError(
                    "Variable name(s) either need to be the name of the dataarray, "
                    "or need to be present in the coordinates of the dataarray."
                )

        return xarray_structure

    missing_variables: set[str] = {
        variable_name
        for variable_name in new_variable_units
        if variable_name not in xarray_structure.variables
    }
    if missing_variables:
        raise ValueError(
            "All variables in new_variable_units must be present in xarray_structure. "
            f"Missing variables: {missing_variables}."
        )

    return xarray_structure.assign(
        {
            variable_name: convert_variable(xarray_structure[variable_name], units)
            for variable_name, units in new_variable_units.items()
        }
    )
