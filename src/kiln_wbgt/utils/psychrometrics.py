#!/usr/bin/env python
"""Psychrometric and solar-geometry helpers for the WBGT models."""

from typing import Optional, Union

import numpy as np
import pandas as pd
import psychrolib as psl

psl.SetUnitSystem(psl.SI)

STANDARD_PRESSURE_PA = 101325.0

# Magnus-type (a, b) coefficients per dewpoint mode; mode C is Buck (1996)
MAGNUS_COEFFICIENTS = {
    "A": (17.27, 237.7),
    "B": (17.625, 243.04),
}
BUCK_COEFFICIENTS = (18.678, 257.14, 234.5)

ArrayLike = Union[np.ndarray, pd.Series, float]


def saturation_vapour_pressure(t_c: ArrayLike) -> np.ndarray:
    """Saturation vapour pressure over water in hPa (Magnus form)."""
    t_c = np.asarray(t_c, dtype=float)
    return 6.1094 * np.exp(17.625 * t_c / (t_c + 243.04))


def dewpoint_from_relative_humidity(rh: ArrayLike, t_c: ArrayLike, mode: str = "A") -> np.ndarray:
    """Dewpoint temperature (°C) from relative humidity (%) and air temperature (°C).

    Relative humidity is clipped to (0, 100] so that the dewpoint never
    exceeds the air temperature.

    Args:
        rh: Relative humidity in percent
        t_c: Air temperature in Celsius
        mode: ``A`` (Magnus 17.27/237.7), ``B`` (Magnus 17.625/243.04)
            or ``C`` (Buck 1996)

    Returns:
        Dewpoint temperature in Celsius
    """
    mode = mode.upper()
    rh = np.clip(np.asarray(rh, dtype=float), 1e-3, 100.0)
    t_c = np.asarray(t_c, dtype=float)

    if mode in MAGNUS_COEFFICIENTS:
        a, b = MAGNUS_COEFFICIENTS[mode]
        gamma = np.log(rh / 100.0) + a * t_c / (b + t_c)
        return b * gamma / (a - gamma)

    if mode == "C":
        b, c, d = BUCK_COEFFICIENTS
        gamma = np.log(rh / 100.0 * np.exp((b - t_c / d) * (t_c / (c + t_c))))
        return c * gamma / (b - gamma)

    raise ValueError(f"Unknown dewpoint mode: {mode}. Available: ['A', 'B', 'C']")


def stull_wet_bulb(t_c: ArrayLike, rh: ArrayLike) -> np.ndarray:
    """Wet-bulb temperature (°C) after Stull (2011).

    Valid for 5-99 % relative humidity and -20 to 50 °C.
    """
    t_c = np.asarray(t_c, dtype=float)
    rh = np.asarray(rh, dtype=float)
    return (
        t_c * np.arctan(0.151977 * np.sqrt(rh + 8.313659))
        + np.arctan(t_c + rh)
        - np.arctan(rh - 1.676331)
        + 0.00391838 * rh ** 1.5 * np.arctan(0.023101 * rh)
        - 4.686035
    )


def psychrometric_wet_bulb(
    t_c: ArrayLike,
    td_c: ArrayLike,
    pressure_pa: float = STANDARD_PRESSURE_PA,
) -> np.ndarray:
    """Psychrometric wet-bulb temperature (°C) from air and dewpoint temperature.

    Solved with psychrolib; missing inputs stay missing.
    """
    t_c = np.asarray(t_c, dtype=float)
    td_c = np.minimum(np.asarray(td_c, dtype=float), t_c)

    result = np.full(t_c.shape, np.nan)
    valid = np.isfinite(t_c) & np.isfinite(td_c)
    if valid.any():
        wet_bulb = np.vectorize(psl.GetTWetBulbFromTDewPoint, otypes=[float])
        result[valid] = wet_bulb(t_c[valid], td_c[valid], pressure_pa)
    return result


def day_of_year(dates) -> np.ndarray:
    return pd.DatetimeIndex(dates).dayofyear.values.astype(float)


def solar_declination(dates) -> np.ndarray:
    """Solar declination in radians (Cooper 1969)."""
    doy = day_of_year(dates)
    return np.deg2rad(23.45) * np.sin(2 * np.pi * (284 + doy) / 365.0)


def earth_sun_distance_factor(dates) -> np.ndarray:
    """Inverse squared relative Earth-Sun distance."""
    doy = day_of_year(dates)
    return 1 + 0.033 * np.cos(2 * np.pi * doy / 365.0)


def cos_solar_zenith_angle(
    dates,
    lat: float,
    lon: float = 0.0,
    hour_utc: Optional[ArrayLike] = None,
) -> np.ndarray:
    """Cosine of the solar zenith angle.

    Args:
        dates: Daily dates
        lat: Latitude in degrees
        lon: Longitude in degrees, only used when ``hour_utc`` is given
        hour_utc: Hour of day in UTC. ``None`` evaluates local solar noon.

    Returns:
        Cosine of the zenith angle, negative when the sun is below the horizon
    """
    declination = solar_declination(dates)
    phi = np.deg2rad(lat)

    if hour_utc is None:
        hour_angle = np.zeros_like(declination)
    else:
        solar_time = np.asarray(hour_utc, dtype=float) + lon / 15.0
        hour_angle = np.deg2rad(15.0 * (solar_time - 12.0))

    cza = np.sin(phi) * np.sin(declination) + np.cos(phi) * np.cos(declination) * np.cos(hour_angle)
    return np.clip(cza, -1.0, 1.0)
