import logging
from typing import Any, NamedTuple, Optional, Protocol
from warnings import warn

import numpy as np
import pint
import xarray as xr

from tracegas.errors import ShapeMismatchError, UnitlessIngestWarning
from tracegas.units import PhysicalQuantity, convert

logger = logging.getLogger(__name__)


class TaggedArray(NamedTuple):
    data: np.ndarray
    units: str


class HasTaggedFields(Protocol):
    def get_field(self, field_name: str) -> TaggedArray: ...


class ValuesAndUnits(NamedTuple):
    values: Any
    units: Optional[str]


def separate_values_and_units(source: Any) -> ValuesAndUnits:
    if isinstance(source, PhysicalQuantity):
        return ValuesAndUnits(source.value, source.units)

    if isinstance(source, pint.Quantity):
        return ValuesAndUnits(source.magnitude, str(source.units))

    if isinstance(source, xr.DataArray):
        if isinstance(source.data, pint.Quantity):
            return ValuesAndUnits(source.data.magnitude, str(source.data.units))

        return ValuesAndUnits(source.to_numpy(), source.attrs.get("units"))

    return ValuesAndUnits(source, None)


def ingest(target: HasTaggedFields, field_name: str, source: Any) -> None:
    """
    Copy `source` into the named field of `target`, in place.

    Sources carrying units (PhysicalQuantity, pint.Quantity, or a DataArray
    with a "units" attribute) are converted into the field's declared units
    first. A source without units is copied verbatim and is taken to already
    be expressed in the field's units; a UnitlessIngestWarning flags this.

    Every check runs before the copy, so a failed ingest leaves the target
    untouched.
    """
    field: TaggedArray = target.get_field(field_name)
    source_values, source_units = separate_values_and_units(source)

    if source_units is None:
        warn(
            f"Ingesting values without units into {field_name!r}; "
            f"they are assumed to be in {field.units!r}.",
            UnitlessIngestWarning,
            stacklevel=2,
        )
        values_in_field_units: np.ndarray = np.asarray(source_values)
    else:
        values_in_field_units: np.ndarray = np.asarray(
            convert(PhysicalQuantity(source_values, source_units), field.units).value
        )

    if values_in_field_units.size != field.data.size:
        raise ShapeMismatchError(
            f"Cannot ingest {values_in_field_units.size} values into "
            f"{field_name!r}, which holds {field.data.size}."
        )

    np.copyto(field.data, values_in_field_units.reshape(field.data.shape))
    logger.debug(
        "Ingested %d values into %r [%s].",
        field.data.size,
        field_name,
        field.units,
    )
