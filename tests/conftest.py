"""
Shared fixtures: a small CO2-like spectroscopy table with a curvilinear
(pressure, temperature) grid, and an atmosphere to ingest into.
"""

import numpy as np
import pytest

from tracegas.material.absorbing.spectroscopy import SpectroscopyTable
from tracegas.vertical.atmosphere import EarthAtmosphere

TABLE_SPECTRAL = np.array([1000.0, 1001.0, 1002.0])
TABLE_BROADENER_VMRS = np.array([0.0, 0.02])
TABLE_PRESSURES = np.array([1.0e3, 1.0e4, 1.0e5])
TABLE_TEMPERATURES = np.array(
    [
        [180.0, 220.0, 260.0],
        [200.0, 240.0, 280.0],
        [220.0, 260.0, 300.0],
    ]
)


def make_cross_section(seed: int = 42) -> np.ndarray:
    rng = np.random.default_rng(seed)

    return rng.uniform(1.0, 5.0, size=(3, 2, 3, 3)) * 1e-20


@pytest.fixture
def cross_section() -> np.ndarray:
    return make_cross_section()


@pytest.fixture
def table(cross_section) -> SpectroscopyTable:
    return SpectroscopyTable(
        spectral=TABLE_SPECTRAL,
        spectral_units="cm^-1",
        broadener_vmrs=TABLE_BROADENER_VMRS,
        pressures=TABLE_PRESSURES,
        pressure_units="Pa",
        temperatures=TABLE_TEMPERATURES,
        temperature_units="K",
        cross_section=cross_section,
        cross_section_units="cm^2/molecule",
        file_name="co2_test.nc",
        gas_name="co2",
    )


@pytest.fixture
def atmosphere() -> EarthAtmosphere:
    return EarthAtmosphere(
        number_of_retrieval_levels=4,
        number_of_met_levels=3,
        dtype=np.float64,
        retrieval_pressure_units="Pa",
        met_pressure_units="hPa",
        temperature_units="K",
        specific_humidity_units="dimensionless",
        altitude_units="m",
        gravity_units="m/s^2",
    )
