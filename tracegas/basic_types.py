from typing import Annotated, Literal, TypeAlias

import msgspec

NormalizedValue: TypeAlias = Annotated[float, msgspec.Meta(ge=0, le=1)]
PositiveValue: TypeAlias = Annotated[float, msgspec.Meta(gt=0)]
NonnegativeValue: TypeAlias = Annotated[float, msgspec.Meta(ge=0)]

LatitudeValue: TypeAlias = Annotated[float, msgspec.Meta(ge=-90, le=90)]
TemperatureValue: TypeAlias = PositiveValue
PressureValue: TypeAlias = NonnegativeValue
MixingRatioValue: TypeAlias = NormalizedValue

NumberOfLevels: TypeAlias = Annotated[int, msgspec.Meta(ge=2)]
UnitString: TypeAlias = Annotated[str, msgspec.Meta(min_length=1)]

NumericPrecision: TypeAlias = Literal["float32", "float64"]

DimensionName: TypeAlias = str

# xarray dimension names shared by the atmosphere and the cross-section tables.
LevelDimension: DimensionName = "level"
LayerDimension: DimensionName = "layer"
MetLevelDimension: DimensionName = "met_level"
MetLayerDimension: DimensionName = "met_layer"
SpectralDimension: DimensionName = "spectral"
BroadenerDimension: DimensionName = "broadener_vmr"
PressureDimension: DimensionName = "pressure"
TemperatureIndexDimension: DimensionName = "temperature_index"
