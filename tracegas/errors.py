class TracegasError(Exception):
    """Base class for every error raised by tracegas."""


class DimensionError(TracegasError, ValueError):
    """Units belong to different dimension classes, or a temperature scale is relative."""


class BoundsError(TracegasError, ValueError):
    """A query falls outside the declared domain of a table axis."""


class ShapeMismatchError(TracegasError, ValueError):
    """Element counts of source and target buffers differ."""


class SpectralFamilyMismatchError(TracegasError, ValueError):
    """A wavelength accessor was used on a wavenumber object, or vice versa."""


class ConstructionError(TracegasError, ValueError):
    """A required construction argument is missing or incompatible."""


class UnitlessIngestWarning(UserWarning):
    """A value without units was copied verbatim into a unit-tagged field."""
