import logging
from enum import Enum
from typing import Optional

import numpy as np

from tracegas.errors import (
    ConstructionError,
    DimensionError,
    SpectralFamilyMismatchError,
)
from tracegas.units import DimensionClass, dimension_class_of

logger = logging.getLogger(__name__)


class SpectralFamily(Enum):
    WAVELENGTH = "wavelength"
    WAVENUMBER = "wavenumber"


SPECTRAL_FAMILY_BY_DIMENSION_CLASS: dict[DimensionClass, SpectralFamily] = {
    DimensionClass.LENGTH: SpectralFamily.WAVELENGTH,
    DimensionClass.WAVENUMBER: SpectralFamily.WAVENUMBER,
}


def build_evenly_spaced_grid(
    lower_limit: float, upper_limit: float, spacing: float, buffer: float
) -> np.ndarray[np.float64]:
    """Evenly spaced points covering [lower - buffer, upper + buffer]."""
    number_of_points: int = (
        int(np.ceil((upper_limit - lower_limit + 2 * buffer) / spacing)) + 1
    )

    return (lower_limit - buffer) + spacing * np.arange(number_of_points)


def build_constant_resolution_grid(
    lower_limit: float, upper_limit: float, resolving_power: float
) -> np.ndarray[np.float64]:
    number_of_points: int = int(
        np.ceil(resolving_power * np.log(upper_limit / lower_limit)) + 1
    )

    return lower_limit * np.exp(np.arange(number_of_points) / resolving_power)


class SpectralWindow:
    """
    A spectral region of interest and the high-resolution grid on which it
    is evaluated. All spectral fields share the units given at
    construction, which fix the window's family: only the wavelength_* or
    only the wavenumber_* accessors are usable. Crossing families is an
    explicit unit conversion (see `tracegas.units.convert_spectral`).

    The grid is expected to reach past both limits; the reference point may
    lie anywhere.
    """

    def __init__(
        self,
        name: str,
        lower_limit: float,
        upper_limit: float,
        high_res_grid: np.ndarray,
        spectral_units: str,
        reference_point: float,
    ):
        try:
            dimension_class: DimensionClass = dimension_class_of(spectral_units)
        except DimensionError as error:
            raise ConstructionError(f"Unreadable spectral units {spectral_units!r}.") from error
        if dimension_class not in SPECTRAL_FAMILY_BY_DIMENSION_CLASS:
            raise ConstructionError(
                f"Spectral window {name!r} needs length or inverse-length units, "
                f"got {spectral_units!r}."
            )
        if not lower_limit < upper_limit:
            raise ConstructionError(
                f"Spectral window {name!r} has lower limit {lower_limit} "
                f"not below upper limit {upper_limit}."
            )

        high_res_grid = np.asarray(high_res_grid, dtype=np.float64)
        if high_res_grid.ndim != 1 or high_res_grid.size == 0:
            raise ConstructionError(
                f"High-resolution grid of {name!r} must be a non-empty one-dimensional array."
            )

        if high_res_grid.min() > lower_limit or high_res_grid.max() < upper_limit:
            logger.warning(
                "High-resolution grid of spectral window %r spans [%g, %g], "
                "which does not cover the window limits [%g, %g] %s.",
                name,
                high_res_grid.min(),
                high_res_grid.max(),
                lower_limit,
                upper_limit,
                spectral_units,
            )

        self._name: str = name
        self._spectral_family: SpectralFamily = SPECTRAL_FAMILY_BY_DIMENSION_CLASS[
            dimension_class
        ]
        self._spectral_units: str = spectral_units
        self._lower_limit: float = float(lower_limit)
        self._upper_limit: float = float(upper_limit)
        self._high_res_grid: np.ndarray = high_res_grid
        self._reference_point: float = float(reference_point)

    @classmethod
    def from_limits(
        cls,
        name: str,
        lower_limit: float,
        upper_limit: float,
        spacing: float,
        spectral_units: str,
        buffer: float = 0.0,
        reference_point: Optional[float] = None,
    ) -> "SpectralWindow":
        """Build the grid from a spacing and a buffer beyond each limit."""
        return cls(
            name=name,
            lower_limit=lower_limit,
            upper_limit=upper_limit,
            high_res_grid=build_evenly_spaced_grid(
                lower_limit, upper_limit, spacing, buffer
            ),
            spectral_units=spectral_units,
            reference_point=(
                reference_point
                if reference_point is not None
                else 0.5 * (lower_limit + upper_limit)
            ),
        )

    def _require_family(self, family: SpectralFamily) -> None:
        if self._spectral_family is not family:
            raise SpectralFamilyMismatchError(
                f"Spectral window {self._name!r} is in {self._spectral_units!r} "
                f"({self._spectral_family.value}); {family.value} accessors are not available."
            )

    @property
    def name(self) -> str:
        return self._name

    @property
    def spectral_family(self) -> SpectralFamily:
        return self._spectral_family

    @property
    def spectral_units(self) -> str:
        return self._spectral_units

    @property
    def number_of_high_res_points(self) -> int:
        return self._high_res_grid.size

    @property
    def wavelength_lower_limit(self) -> float:
        self._require_family(SpectralFamily.WAVELENGTH)
        return self._lower_limit

    @property
    def wavenumber_lower_limit(self) -> float:
        self._require_family(SpectralFamily.WAVENUMBER)
        return self._lower_limit

    @property
    def wavelength_upper_limit(self) -> float:
        self._require_family(SpectralFamily.WAVELENGTH)
        return self._upper_limit

    @property
    def wavenumber_upper_limit(self) -> float:
        self._require_family(SpectralFamily.WAVENUMBER)
        return self._upper_limit

    @property
    def wavelength_grid(self) -> np.ndarray:
        self._require_family(SpectralFamily.WAVELENGTH)
        return self._high_res_grid

    @property
    def wavenumber_grid(self) -> np.ndarray:
        self._require_family(SpectralFamily.WAVENUMBER)
        return self._high_res_grid

    @property
    def wavelength_reference_point(self) -> float:
        self._require_family(SpectralFamily.WAVELENGTH)
        return self._reference_point

    @property
    def wavenumber_reference_point(self) -> float:
        self._require_family(SpectralFamily.WAVENUMBER)
        return self._reference_point

    def high_res_points_within_limits(self) -> np.ndarray:
        """Family-neutral view of the grid points inside [lower, upper]."""
        within_limits: np.ndarray = (self._high_res_grid >= self._lower_limit) & (
            self._high_res_grid <= self._upper_limit
        )

        return self._high_res_grid[within_limits]

    def __repr__(self) -> str:
        return (
            f"SpectralWindow(name={self._name!r}, limits=({self._lower_limit}, "
            f"{self._upper_limit}) {self._spectral_units}, "
            f"number_of_high_res_points={self.number_of_high_res_points})"
        )
