#!/usr/bin/env python
"""Tests for psychrometric and solar-geometry helpers."""

import pytest
import numpy as np
import pandas as pd

from kiln_wbgt.utils.psychrometrics import (
    cos_solar_zenith_angle,
    dewpoint_from_relative_humidity,
    earth_sun_distance_factor,
    psychrometric_wet_bulb,
    saturation_vapour_pressure,
    solar_declination,
    stull_wet_bulb,
)


class TestDewpoint:
    """Test dewpoint approximations."""

    @pytest.mark.parametrize("mode", ["A", "B"])
    def test_saturated_air_dewpoint_equals_temperature(self, mode):
        t = np.array([5.0, 20.0, 35.0])
        td = dewpoint_from_relative_humidity(np.full(3, 100.0), t, mode)
        np.testing.assert_allclose(td, t, atol=1e-9)

    def test_buck_mode_close_to_temperature_when_saturated(self):
        td = dewpoint_from_relative_humidity(100.0, 20.0, "C")
        assert abs(float(td) - 20.0) < 0.2

    @pytest.mark.parametrize("mode", ["A", "B", "C"])
    def test_dewpoint_below_temperature(self, mode):
        t = np.array([25.0, 30.0, 40.0])
        rh = np.array([80.0, 50.0, 20.0])
        td = dewpoint_from_relative_humidity(rh, t, mode)
        assert np.all(td < t)
        # Drier air has a larger dewpoint depression
        depression = t - td
        assert depression[0] < depression[1] < depression[2]

    def test_known_value(self):
        # 30 °C at 50 % relative humidity has a dewpoint of about 18.4 °C
        td = dewpoint_from_relative_humidity(50.0, 30.0, "A")
        assert float(td) == pytest.approx(18.4, abs=0.1)

    def test_mode_is_case_insensitive(self):
        np.testing.assert_allclose(
            dewpoint_from_relative_humidity(60.0, 30.0, "b"),
            dewpoint_from_relative_humidity(60.0, 30.0, "B"),
        )

    def test_zero_humidity_stays_finite(self):
        td = dewpoint_from_relative_humidity(0.0, 30.0, "A")
        assert np.isfinite(td)

    def test_humidity_above_100_is_clipped(self):
        td = dewpoint_from_relative_humidity(105.0, 30.0, "A")
        assert float(td) == pytest.approx(30.0)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown dewpoint mode"):
            dewpoint_from_relative_humidity(50.0, 30.0, "D")


class TestWetBulb:
    """Test wet-bulb temperatures."""

    def test_stull_reference_value(self):
        # Stull (2011): 20 °C and 50 % relative humidity give 13.7 °C
        assert float(stull_wet_bulb(20.0, 50.0)) == pytest.approx(13.7, abs=0.1)

    def test_stull_increases_with_humidity(self):
        wet_bulb = stull_wet_bulb(np.full(3, 35.0), np.array([20.0, 50.0, 80.0]))
        assert np.all(np.diff(wet_bulb) > 0)

    def test_psychrometric_saturated(self):
        assert float(psychrometric_wet_bulb(30.0, 30.0)[()]) == pytest.approx(30.0, abs=0.05)

    def test_psychrometric_between_dewpoint_and_temperature(self):
        wet_bulb = psychrometric_wet_bulb(np.array([35.0]), np.array([20.0]))
        assert 20.0 < wet_bulb[0] < 35.0

    def test_psychrometric_dewpoint_above_temperature_is_capped(self):
        wet_bulb = psychrometric_wet_bulb(np.array([25.0]), np.array([27.0]))
        assert wet_bulb[0] == pytest.approx(25.0, abs=0.05)

    def test_psychrometric_missing_values(self):
        wet_bulb = psychrometric_wet_bulb(np.array([30.0, np.nan]), np.array([20.0, 20.0]))
        assert np.isfinite(wet_bulb[0])
        assert np.isnan(wet_bulb[1])

    def test_saturation_vapour_pressure_at_freezing(self):
        assert float(saturation_vapour_pressure(0.0)) == pytest.approx(6.11, abs=0.01)


class TestSolarGeometry:
    """Test solar position helpers."""

    def test_declination_at_june_solstice(self):
        declination = solar_declination(pd.DatetimeIndex(["2021-06-21"]))
        assert np.rad2deg(declination[0]) == pytest.approx(23.45, abs=0.1)

    def test_distance_factor_larger_in_january(self):
        factor = earth_sun_distance_factor(pd.DatetimeIndex(["2021-01-03", "2021-07-04"]))
        assert factor[0] > 1.0 > factor[1]

    def test_noon_on_equator_at_equinox(self):
        cza = cos_solar_zenith_angle(pd.DatetimeIndex(["2021-03-21"]), lat=0.0)
        assert cza[0] > 0.999

    def test_midnight_is_below_horizon(self):
        cza = cos_solar_zenith_angle(pd.DatetimeIndex(["2021-03-21"]), lat=0.0, lon=0.0, hour_utc=0.0)
        assert cza[0] < 0

    def test_local_noon_from_longitude(self):
        # 12:00 local solar time at 75E is 07:00 UTC
        dates = pd.DatetimeIndex(["2021-06-01"])
        at_noon = cos_solar_zenith_angle(dates, lat=26.0, lon=75.0, hour_utc=7.0)
        default = cos_solar_zenith_angle(dates, lat=26.0)
        np.testing.assert_allclose(at_noon, default)

    def test_values_within_bounds(self):
        dates = pd.date_range("2021-01-01", periods=365, freq="D")
        cza = cos_solar_zenith_angle(dates, lat=28.0, lon=77.0, hour_utc=np.linspace(0, 23, 365))
        assert np.all(cza <= 1.0) and np.all(cza >= -1.0)
