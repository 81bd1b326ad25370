import numpy as np
import pytest

from tracegas.errors import DimensionError
from tracegas.units import (
    DimensionClass,
    PhysicalQuantity,
    conversion_factor,
    convert,
    convert_spectral,
    dimension_class_of,
    is_absolute_temperature,
    parse_units,
)


class TestDimensionClasses:
    @pytest.mark.parametrize(
        "units, expected_class",
        [
            ("Pa", DimensionClass.PRESSURE),
            ("hPa", DimensionClass.PRESSURE),
            ("K", DimensionClass.TEMPERATURE),
            ("km", DimensionClass.LENGTH),
            ("micrometer", DimensionClass.LENGTH),
            ("m/s^2", DimensionClass.ACCELERATION),
            ("kg/kg", DimensionClass.DIMENSIONLESS),
            ("ppmv", DimensionClass.DIMENSIONLESS),
            ("cm^-1", DimensionClass.WAVENUMBER),
            ("cm^2/molecule", DimensionClass.AREA_PER_MOLECULE),
        ],
    )
    def test_units_fall_in_expected_class(self, units, expected_class):
        assert dimension_class_of(units) is expected_class

    def test_unknown_units_raise_dimension_error(self):
        with pytest.raises(DimensionError):
            parse_units("not_a_unit_at_all")

    def test_unsupported_dimensionality_raises(self):
        with pytest.raises(DimensionError):
            dimension_class_of("kg")

    @pytest.mark.parametrize(
        "units, is_absolute",
        [("K", True), ("degR", True), ("degC", False), ("degF", False), ("delta_degC", False)],
    )
    def test_absolute_temperature_scales(self, units, is_absolute):
        assert is_absolute_temperature(units) is is_absolute


class TestConvert:
    @pytest.mark.parametrize(
        "first_units, second_units",
        [
            ("Pa", "hPa"),
            ("bar", "Pa"),
            ("K", "degR"),
            ("m", "km"),
            ("m/s^2", "cm/s^2"),
            ("dimensionless", "ppmv"),
            ("cm^-1", "m^-1"),
        ],
    )
    def test_round_trip_within_a_dimension_class(self, first_units, second_units):
        original = PhysicalQuantity(np.array([0.5, 3.0, 1234.5]), first_units)

        round_tripped = convert(convert(original, second_units), first_units)

        assert round_tripped.units == first_units
        np.testing.assert_allclose(round_tripped.value, original.value, rtol=1e-12)

    def test_scalar_stays_scalar(self):
        converted = convert(PhysicalQuantity(1.0, "bar"), "Pa")

        assert isinstance(converted.value, float)
        assert converted.value == pytest.approx(1.0e5)

    def test_ppmv_is_one_millionth(self):
        assert conversion_factor("ppmv", "dimensionless") == pytest.approx(1e-6)

    def test_cross_class_conversion_raises(self):
        with pytest.raises(DimensionError):
            convert(PhysicalQuantity(1.0, "Pa"), "K")

    def test_relative_temperature_scale_is_rejected(self):
        with pytest.raises(DimensionError):
            convert(PhysicalQuantity(300.0, "K"), "degC")

        with pytest.raises(DimensionError):
            convert(PhysicalQuantity(20.0, "degC"), "K")


class TestConvertSpectral:
    def test_wavelength_to_wavenumber(self):
        converted = convert_spectral(PhysicalQuantity(1.0, "micrometer"), "cm^-1")

        assert converted.value == pytest.approx(1.0e4)

    def test_ascending_wavelengths_come_back_descending(self):
        converted = convert_spectral(
            PhysicalQuantity(np.array([1.0, 2.0, 4.0]), "micrometer"), "cm^-1"
        )

        np.testing.assert_allclose(converted.value, [1.0e4, 5.0e3, 2.5e3])

    def test_non_spectral_units_raise(self):
        with pytest.raises(DimensionError):
            convert_spectral(PhysicalQuantity(1.0, "Pa"), "cm^-1")
