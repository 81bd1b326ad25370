import numpy as np
import pytest

from tracegas.buffers import ingest
from tracegas.constants_and_conversions import DRY_AIR_TO_WATER_MOLAR_MASS_RATIO
from tracegas.errors import ConstructionError, ShapeMismatchError
from tracegas.material.elements import (
    ELEMENT_CAPABILITIES,
    AtmosphereElement,
    Capability,
    ElementKind,
    register_element_type,
)
from tracegas.material.gases.gas_absorber import GasAbsorber
from tracegas.material.gases.molecular_metrics import (
    h2o_vmr_to_specific_humidity,
    specific_humidity_to_h2o_vmr,
    vmr_to_mass_mixing_ratio,
)
from tracegas.material.scattering.rayleigh import RayleighScattering
from tracegas.units import PhysicalQuantity
from tracegas.vertical.altitude import calculate_normal_gravity
from tracegas.vertical.atmosphere import (
    EarthAtmosphere,
    calculate_altitude_and_gravity,
    calculate_layers,
    h2o_vmr_levels,
    met_profile_on_retrieval_grid,
)

FIELD_NAMES = [
    f"{profile_name}_{suffix}"
    for profile_name in (
        "pressure",
        "met_pressure",
        "temperature",
        "specific_humidity",
        "altitude",
        "gravity",
    )
    for suffix in ("levels", "layers")
]


def fill_met_state(atmosphere: EarthAtmosphere) -> None:
    ingest(atmosphere, "met_pressure_levels", PhysicalQuantity(np.array([100.0, 500.0, 1000.0]), "hPa"))
    ingest(atmosphere, "temperature_levels", PhysicalQuantity(np.full(3, 250.0), "K"))
    ingest(atmosphere, "specific_humidity_levels", PhysicalQuantity(np.zeros(3), "kg/kg"))


class TestConstruction:
    def test_zero_filled_with_requested_counts(self, atmosphere):
        assert atmosphere.number_of_retrieval_levels == 4
        assert atmosphere.number_of_retrieval_layers == 3
        assert atmosphere.number_of_met_levels == 3
        assert atmosphere.number_of_met_layers == 2
        assert atmosphere.elements == ()

        for field_name in FIELD_NAMES:
            assert not atmosphere.get_field(field_name).data.any()

    def test_profiles_live_on_the_met_grid(self, atmosphere):
        for profile in (
            atmosphere.temperature,
            atmosphere.specific_humidity,
            atmosphere.altitude,
            atmosphere.gravity,
        ):
            assert profile.number_of_levels == atmosphere.number_of_met_levels

    def test_single_precision(self):
        atmosphere = EarthAtmosphere(3, 3, dtype="float32")

        assert atmosphere.temperature.levels.dtype == np.float32

    @pytest.mark.parametrize(
        "units_argument, bad_units",
        [
            ("retrieval_pressure_units", "m"),
            ("met_pressure_units", "K"),
            ("temperature_units", "degC"),
            ("temperature_units", "Pa"),
            ("specific_humidity_units", "kg"),
            ("altitude_units", "s"),
            ("gravity_units", "m"),
            ("gravity_units", "nonsense_units"),
        ],
    )
    def test_incompatible_units_are_rejected(self, units_argument, bad_units):
        with pytest.raises(ConstructionError):
            EarthAtmosphere(4, 3, **{units_argument: bad_units})

    def test_get_field_reports_declared_units(self, atmosphere):
        assert atmosphere.get_field("pressure_layers").units == "Pa"
        assert atmosphere.get_field("met_pressure_levels").units == "hPa"
        assert atmosphere.get_field("gravity_layers").units == "m/s^2"

        with pytest.raises(KeyError):
            atmosphere.get_field("levels")


class TestStructuralImmutability:
    def test_level_counts_survive_mutation_and_elements(self, atmosphere, table):
        fill_met_state(atmosphere)
        ingest(
            atmosphere,
            "pressure_levels",
            PhysicalQuantity(np.array([1.0e3, 1.0e4, 5.0e4, 1.0e5]), "Pa"),
        )
        atmosphere.temperature.levels[1] = 275.0
        atmosphere.add_element(RayleighScattering())
        atmosphere.add_element(GasAbsorber("co2", table, np.full(4, 4.2e-4), "dimensionless"))
        calculate_layers(atmosphere)

        assert atmosphere.number_of_retrieval_levels == 4
        assert atmosphere.number_of_met_levels == 3
        assert atmosphere.retrieval_grid.layers.shape == (3,)
        assert atmosphere.temperature.layers.shape == (2,)

    def test_layers_stay_stale_until_recalculated(self, atmosphere):
        fill_met_state(atmosphere)

        np.testing.assert_array_equal(atmosphere.met_grid.layers, [0.0, 0.0])

        calculate_layers(atmosphere)

        np.testing.assert_array_equal(atmosphere.met_grid.layers, [300.0, 750.0])
        np.testing.assert_array_equal(atmosphere.temperature.layers, [250.0, 250.0])

        atmosphere.temperature.levels[0] = 210.0
        np.testing.assert_array_equal(atmosphere.temperature.layers, [250.0, 250.0])


class TestElementCollection:
    def test_insertion_order_is_kept(self, atmosphere, table):
        rayleigh = RayleighScattering()
        co2 = GasAbsorber("co2", table, np.full(4, 4.2e-4), "dimensionless")
        ch4 = GasAbsorber("ch4", table, np.full(4, 1.9), "ppmv")

        for element in (co2, rayleigh, ch4):
            atmosphere.add_element(element)

        assert atmosphere.elements == (co2, rayleigh, ch4)
        assert atmosphere.elements_with_capability(Capability.GAS_ABSORPTION) == [co2, ch4]
        assert atmosphere.has_capability(Capability.RAYLEIGH_SCATTERING)
        assert not atmosphere.has_capability(Capability.CLOUD_SCATTERING)

    def test_remove_element(self, atmosphere):
        rayleigh = RayleighScattering()
        atmosphere.add_element(rayleigh)

        atmosphere.remove_element(rayleigh)

        assert atmosphere.elements == ()
        assert not atmosphere.has_capability(Capability.RAYLEIGH_SCATTERING)
        with pytest.raises(ValueError):
            atmosphere.remove_element(rayleigh)

    def test_only_elements_can_be_added(self, atmosphere):
        with pytest.raises(TypeError):
            atmosphere.add_element("co2")

    def test_absorber_must_fit_the_retrieval_grid(self, atmosphere, table):
        with pytest.raises(ShapeMismatchError):
            atmosphere.add_element(GasAbsorber("co2", table, np.full(7, 4.2e-4), "dimensionless"))

        assert atmosphere.elements == ()

    def test_absorber_names_are_unique(self, atmosphere, table):
        atmosphere.add_element(GasAbsorber("co2", table, np.full(4, 4.2e-4), "dimensionless"))

        with pytest.raises(ConstructionError):
            atmosphere.add_element(GasAbsorber("co2", table, np.full(4, 420.0), "ppmv"))

        assert len(atmosphere.elements) == 1

    def test_other_absorbing_variants_are_not_exported_as_vmrs(self, atmosphere, table):
        try:

            @register_element_type(
                ElementKind.AEROSOL,
                Capability.AEROSOL_SCATTERING | Capability.GAS_ABSORPTION,
            )
            class AbsorbingAerosol(AtmosphereElement):
                pass

            atmosphere.add_element(AbsorbingAerosol())
            atmosphere.add_element(GasAbsorber("co2", table, np.full(4, 4.2e-4), "dimensionless"))

            dataset = atmosphere.to_dataset()

            assert len(atmosphere.elements_with_capability(Capability.GAS_ABSORPTION)) == 2
            assert [name for name in dataset.data_vars if name.endswith("_vmr_levels")] == [
                "co2_vmr_levels"
            ]
            assert dataset.attrs["elements"] == "aerosol, co2"
        finally:
            ELEMENT_CAPABILITIES.pop(ElementKind.AEROSOL, None)


class TestDerivedProfiles:
    def test_met_profile_on_retrieval_grid(self, atmosphere):
        fill_met_state(atmosphere)
        atmosphere.temperature.levels[:] = [200.0, 250.0, 300.0]
        ingest(
            atmosphere,
            "pressure_levels",
            PhysicalQuantity(np.array([50.0, 100.0, 500.0, 2000.0]), "hPa"),
        )

        temperatures = met_profile_on_retrieval_grid(atmosphere, "temperature")

        assert temperatures.units == "K"
        np.testing.assert_allclose(temperatures.value, [200.0, 200.0, 250.0, 300.0])

    def test_met_profile_name_must_be_a_met_profile(self, atmosphere):
        with pytest.raises(KeyError):
            met_profile_on_retrieval_grid(atmosphere, "pressure")

    def test_h2o_vmr_levels(self, atmosphere):
        ingest(
            atmosphere,
            "specific_humidity_levels",
            PhysicalQuantity(np.array([0.0, 1.0, 10.0]), "g/kg"),
        )

        np.testing.assert_allclose(
            h2o_vmr_levels(atmosphere),
            [0.0, 0.001 / 0.999 * DRY_AIR_TO_WATER_MOLAR_MASS_RATIO, 0.01 / 0.99 * DRY_AIR_TO_WATER_MOLAR_MASS_RATIO],
        )

    def test_mass_mixing_ratio(self):
        assert vmr_to_mass_mixing_ratio(4.2e-4, "co2") == pytest.approx(
            4.2e-4 * 44.01 / 28.9644
        )

    def test_specific_humidity_conversion_inverts(self):
        specific_humidities = np.array([1e-5, 3e-3, 2e-2])

        np.testing.assert_allclose(
            h2o_vmr_to_specific_humidity(specific_humidity_to_h2o_vmr(specific_humidities)),
            specific_humidities,
        )


class TestAltitudeAndGravity:
    def test_isothermal_dry_column(self, atmosphere):
        fill_met_state(atmosphere)

        calculate_altitude_and_gravity(atmosphere, latitude_in_degrees=45.0)

        surface_gravity = calculate_normal_gravity(45.0)
        dry_scale_height = 287.058 * 250.0 / surface_gravity

        assert atmosphere.altitude.levels[-1] == 0.0
        assert atmosphere.altitude.levels[1] == pytest.approx(
            dry_scale_height * np.log(2.0), rel=5e-3
        )
        assert atmosphere.altitude.levels[0] == pytest.approx(
            dry_scale_height * np.log(10.0), rel=5e-3
        )
        assert atmosphere.gravity.levels[-1] == pytest.approx(surface_gravity)
        assert np.all(np.diff(atmosphere.gravity.levels) > 0)

    def test_results_are_written_in_declared_units(self):
        atmosphere = EarthAtmosphere(2, 3, altitude_units="km", gravity_units="cm/s^2")
        fill_met_state(atmosphere)

        calculate_altitude_and_gravity(
            atmosphere, latitude_in_degrees=0.0, surface_altitude=PhysicalQuantity(500.0, "m")
        )

        assert atmosphere.altitude.levels[-1] == pytest.approx(0.5)
        assert atmosphere.gravity.levels[-1] == pytest.approx(
            100 * calculate_normal_gravity(0.0) * (6.371e6 / (6.371e6 + 500.0)) ** 2
        )

    def test_moisture_raises_the_column(self, atmosphere):
        fill_met_state(atmosphere)
        calculate_altitude_and_gravity(atmosphere, latitude_in_degrees=45.0)
        dry_top = atmosphere.altitude.levels[0]

        ingest(atmosphere, "specific_humidity_levels", PhysicalQuantity(np.full(3, 0.01), "kg/kg"))
        calculate_altitude_and_gravity(atmosphere, latitude_in_degrees=45.0)

        assert atmosphere.altitude.levels[0] > dry_top

    def test_pressures_must_increase_toward_the_surface(self, atmosphere):
        fill_met_state(atmosphere)
        atmosphere.met_grid.levels[:] = atmosphere.met_grid.levels[::-1].copy()

        with pytest.raises(ValueError):
            calculate_altitude_and_gravity(atmosphere, latitude_in_degrees=45.0)

    def test_zero_pressure_top_level_is_rejected(self, atmosphere):
        fill_met_state(atmosphere)
        atmosphere.met_grid.levels[0] = 0.0

        with pytest.raises(ValueError):
            calculate_altitude_and_gravity(atmosphere, latitude_in_degrees=45.0)

        assert not atmosphere.altitude.levels.any()


def test_to_dataset(atmosphere, table):
    fill_met_state(atmosphere)
    calculate_layers(atmosphere)
    atmosphere.add_element(GasAbsorber("co2", table, np.full(4, 4.2e-4), "dimensionless"))
    atmosphere.add_element(RayleighScattering())

    dataset = atmosphere.to_dataset()

    assert dataset["met_pressure_levels"].attrs["units"] == "hPa"
    assert dataset["temperature_layers"].dims == ("met_layer",)
    assert dataset["pressure_levels"].dims == ("level",)
    np.testing.assert_allclose(dataset["co2_vmr_levels"].to_numpy(), 4.2e-4)
    assert dataset.attrs["elements"] == "co2, rayleigh_scattering"
