from typing import Optional

import numpy as np

from tracegas.buffers import TaggedArray
from tracegas.errors import ConstructionError, DimensionError
from tracegas.material.absorbing.spectroscopy import SpectroscopyTable
from tracegas.material.elements import (
    AtmosphereElement,
    Capability,
    ElementKind,
    register_element_type,
)
from tracegas.units import DimensionClass, PhysicalQuantity, convert, dimension_class_of


@register_element_type(ElementKind.GAS_ABSORBER, Capability.GAS_ABSORPTION)
class GasAbsorber(AtmosphereElement):
    """
    An absorbing gas: a VMR profile on the retrieval grid plus a reference to
    its (shared) spectroscopy table.

    By default the absorber keeps the very array it was given, so edits made
    through either the caller's array or `vmr_levels` are seen by both. Pass
    `copy=True` to hold a private copy instead.
    """

    def __init__(
        self,
        name: str,
        spectroscopy: SpectroscopyTable,
        vmr_levels: np.ndarray,
        vmr_units: Optional[str] = None,
        *,
        copy: bool = False,
    ):
        if vmr_units is None:
            raise ConstructionError(
                f"Gas absorber {name!r} needs explicit VMR units (e.g. 'dimensionless' or 'ppmv')."
            )
        try:
            vmr_dimension_class: DimensionClass = dimension_class_of(vmr_units)
        except DimensionError as error:
            raise ConstructionError(f"Unreadable VMR units {vmr_units!r}.") from error
        if vmr_dimension_class is not DimensionClass.DIMENSIONLESS:
            raise ConstructionError(
                f"VMR units must be dimensionless, got {vmr_units!r} "
                f"({vmr_dimension_class.name.lower()})."
            )

        if not isinstance(spectroscopy, SpectroscopyTable):
            raise ConstructionError(
                f"Gas absorber {name!r} needs a SpectroscopyTable, got {type(spectroscopy).__name__}."
            )

        if copy:
            vmr_levels = np.array(vmr_levels, dtype=np.float64)
        elif not isinstance(vmr_levels, np.ndarray):
            raise ConstructionError(
                f"Gas absorber {name!r} can only share storage with a numpy array; "
                "pass copy=True to build from other sequences."
            )
        if vmr_levels.ndim != 1:
            raise ConstructionError(
                f"VMR levels of {name!r} must be one-dimensional, got shape {vmr_levels.shape}."
            )

        self._name: str = name
        self._spectroscopy: SpectroscopyTable = spectroscopy
        self._vmr_levels: np.ndarray = vmr_levels
        self._vmr_units: str = vmr_units

    @property
    def name(self) -> str:
        return self._name

    @property
    def spectroscopy(self) -> SpectroscopyTable:
        return self._spectroscopy

    @property
    def vmr_levels(self) -> np.ndarray:
        return self._vmr_levels

    @property
    def vmr_units(self) -> str:
        return self._vmr_units

    @property
    def number_of_levels(self) -> int:
        return self._vmr_levels.shape[0]

    def get_field(self, field_name: str) -> TaggedArray:
        if field_name != "vmr_levels":
            raise KeyError(f"Gas absorber {self._name!r} has no field {field_name!r}.")

        return TaggedArray(self._vmr_levels, self._vmr_units)

    def vmr_in(self, units: str) -> np.ndarray:
        return np.asarray(convert(PhysicalQuantity(self._vmr_levels, self._vmr_units), units).value)

    def __repr__(self) -> str:
        return (
            f"GasAbsorber(name={self._name!r}, spectroscopy={self._spectroscopy!r}, "
            f"number_of_levels={self.number_of_levels}, vmr_units={self._vmr_units!r})"
        )
