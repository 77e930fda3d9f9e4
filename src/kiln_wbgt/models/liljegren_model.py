#!/usr/bin/env python
"""Liljegren et al. (2008) outdoor WBGT model.

Globe and natural wet-bulb temperatures are found by fixed-point
iteration of the sensor energy balances:

    WBGT = 0.7 Tnwb + 0.2 Tg + 0.1 Ta

Reference:
    Liljegren, J. C., Carhart, R. A., Lawday, P., Tschopp, S. & Sharp, R.
    Modeling the Wet Bulb Globe Temperature Using Standard Meteorological
    Measurements. J. Occup. Environ. Hyg. 5, 645-655 (2008).
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .base_model import BaseWBGTModel, console
from ..utils.psychrometrics import cos_solar_zenith_angle, earth_sun_distance_factor

# physical constants
STEFANB = 5.6696e-8  # stefan-boltzmann constant
CP = 1003.5  # specific heat of dry air (J/(kg K))
M_AIR = 28.97  # molecular weight of dry air (g/mol)
M_H2O = 18.015  # molecular weight of water vapour (g/mol)
R_GAS = 8314.34  # ideal gas constant (J/(kmol K))
R_AIR = R_GAS / M_AIR
PR = CP / (CP + 1.25 * R_AIR)  # Prandtl number
RATIO = CP * M_AIR / M_H2O

# wick constants
EMIS_WICK = 0.95
ALB_WICK = 0.4
D_WICK = 0.007
L_WICK = 0.0254

# globe constants
D_GLOBE = 0.0508
EMIS_GLOBE = 0.95
ALB_GLOBE = 0.05

# surface constants
EMIS_SFC = 0.999
ALB_SFC = 0.45

SOLAR_CONST = 1367.0
MIN_SPEED = 0.13
REF_HEIGHT = 2.0
CZA_MIN = np.cos(np.deg2rad(89.5))
CONVERGENCE = 0.02
MAX_ITER = 500

# power-law wind exponents for stability classes A-F over rural terrain
RURAL_EXPONENTS = np.array([0.07, 0.07, 0.10, 0.15, 0.35, 0.55])

# daytime stability class by wind speed class (rows) and insolation class (columns)
DAYTIME_STABILITY = np.array([
    [1, 1, 2, 4],
    [1, 2, 3, 4],
    [2, 2, 3, 4],
    [3, 3, 4, 4],
    [3, 4, 4, 4],
])


def esat(t_k, pressure_hpa):
    """Saturation vapour pressure over water (hPa) with the enhancement factor."""
    return 6.1121 * np.exp(17.502 * (t_k - 273.15) / (t_k - 32.18)) * (1.0007 + 3.46e-6 * pressure_hpa)


def emis_atm(t_k, e_hpa):
    return 0.575 * np.power(e_hpa, 1.0 / 7.0)


def viscosity(t_k):
    """Air viscosity (kg/(m s))."""
    omega = 1.2945 - t_k / 1141.176470588
    return 2.6693e-6 * np.sqrt(M_AIR * t_k) / (13.082689 * omega)


def thermcond(t_k):
    """Thermal conductivity of air (W/(m K))."""
    return (CP + 1.25 * R_AIR) * viscosity(t_k)


def diffusivity(t_k, pressure_hpa):
    """Diffusivity of water vapour in air (m2/s)."""
    return 2.471773765165648e-05 * (t_k * 0.0034210563748421257) ** 2.334 * (1013.25 / pressure_hpa)


def h_evap(t_k):
    """Heat of evaporation (J/kg)."""
    return (313.15 - t_k) / 30.0 * (-71100.0) + 2.4073e6


def _reynolds(t_k, pressure_hpa, speed, diameter):
    density = pressure_hpa * 100.0 / (R_AIR * t_k)
    return np.maximum(speed, MIN_SPEED) * density * diameter / viscosity(t_k)


def h_sphere(t_k, pressure_hpa, speed):
    """Convective heat transfer coefficient of the globe (W/(m2 K))."""
    nu = 2.0 + 0.6 * np.sqrt(_reynolds(t_k, pressure_hpa, speed, D_GLOBE)) * PR ** 0.3333
    return nu * thermcond(t_k) / D_GLOBE


def h_cylinder(t_k, pressure_hpa, speed):
    """Convective heat transfer coefficient of the wick (W/(m2 K))."""
    nu = 0.281 * _reynolds(t_k, pressure_hpa, speed, D_WICK) ** 0.6 * PR ** 0.44
    return nu * thermcond(t_k) / D_WICK


def stability_class(speed, solar, daytime):
    """Pasquill stability class (1-6) from wind speed and insolation."""
    speed_class = np.digitize(speed, [2.0, 3.0, 5.0, 6.0])
    solar_class = np.where(solar >= 925, 0, np.where(solar >= 675, 1, np.where(solar >= 175, 2, 3)))
    # night-time conditions are treated as slightly stable
    return np.where(daytime, DAYTIME_STABILITY[speed_class, solar_class], 5)


def wind_at_reference_height(speed, height_m, stability):
    """Reduce wind speed to 2 m with a stability-dependent power law."""
    exponent = RURAL_EXPONENTS[np.asarray(stability, dtype=int) - 1]
    return np.maximum(speed * (REF_HEIGHT / height_m) ** exponent, MIN_SPEED)


def direct_beam_fraction(solar, cza, dates):
    """Split the measured shortwave into its direct-beam fraction.

    Returns:
        Tuple of (solar clipped to the top-of-atmosphere maximum, direct fraction)
    """
    daylight = cza > CZA_MIN
    toa = SOLAR_CONST * np.maximum(cza, CZA_MIN) * earth_sun_distance_factor(dates)
    solar = np.where(daylight, np.minimum(np.maximum(solar, 0.0), toa), 0.0)

    s_star = np.minimum(solar / toa, 0.85)
    with np.errstate(divide="ignore"):
        fdir = np.exp(3.0 - 1.34 * s_star - 1.65 / s_star)
    fdir = np.where(daylight & (s_star > 0), np.clip(fdir, 0.0, 0.9), 0.0)
    return solar, fdir


def _iterate(update, start, valid) -> Tuple[np.ndarray, np.ndarray]:
    """Relaxed fixed-point iteration until every valid entry changes by less than 0.02 K."""
    current = np.where(valid, start, np.nan)
    converged = ~valid
    for _ in range(MAX_ITER):
        new = update(current)
        done = np.abs(new - current) < CONVERGENCE
        converged = converged | done
        current = np.where(converged, current, 0.9 * current + 0.1 * new)
        if converged.all():
            break
    return current, converged


def globe_temperature(ta_k, e_hpa, pressure_hpa, speed, solar, fdir, cza):
    """Black globe temperature (K)."""
    t_sfc = ta_k
    valid = np.isfinite(ta_k) & np.isfinite(e_hpa) & np.isfinite(speed) & np.isfinite(solar)
    eps_air = emis_atm(ta_k, e_hpa)
    cza = np.maximum(cza, CZA_MIN)
    solar_term = (
        solar / (2.0 * EMIS_GLOBE * STEFANB) * (1.0 - ALB_GLOBE)
        * (fdir * (1.0 / (2.0 * cza) - 1.0) + 1.0 + ALB_SFC)
    )

    def update(tg):
        h = h_sphere(0.5 * (tg + ta_k), pressure_hpa, speed)
        balance = (
            0.5 * (eps_air * ta_k ** 4 + EMIS_SFC * t_sfc ** 4)
            - h / (EMIS_GLOBE * STEFANB) * (tg - ta_k)
            + solar_term
        )
        return np.power(np.maximum(balance, 0.0), 0.25)

    return _iterate(update, ta_k, valid)


def natural_wet_bulb(ta_k, td_k, e_hpa, pressure_hpa, speed, solar, fdir, cza):
    """Natural (unventilated, sunlit) wet-bulb temperature (K)."""
    t_sfc = ta_k
    valid = np.isfinite(ta_k) & np.isfinite(td_k) & np.isfinite(speed) & np.isfinite(solar)
    eps_air = emis_atm(ta_k, e_hpa)
    cza = np.maximum(cza, CZA_MIN)
    tan_zenith = np.sqrt(1.0 - cza ** 2) / cza
    radiative_solar = (1.0 - ALB_WICK) * solar * (
        (1.0 - fdir) * (1.0 + 0.25 * D_WICK / L_WICK)
        + fdir * (tan_zenith / np.pi + 0.25 * D_WICK / L_WICK)
        + ALB_SFC
    )

    def update(twb):
        t_ref = 0.5 * (twb + ta_k)
        f_atm = STEFANB * EMIS_WICK * (0.5 * (eps_air * ta_k ** 4 + EMIS_SFC * t_sfc ** 4) - twb ** 4) + radiative_solar
        e_wick = esat(twb, pressure_hpa)
        density = pressure_hpa * 100.0 / (R_AIR * t_ref)
        schmidt = viscosity(t_ref) / (density * diffusivity(t_ref, pressure_hpa))
        h = h_cylinder(twb, pressure_hpa, speed)
        return (
            ta_k
            - h_evap(t_ref) / RATIO * (e_wick - e_hpa) / (pressure_hpa - e_wick) * (PR / schmidt) ** 0.56
            + f_atm / h
        )

    return _iterate(update, td_k, valid)


class LiljegrenModel(BaseWBGTModel):
    """Outdoor WBGT from globe and natural wet-bulb temperatures.

    Daily inputs are evaluated at local solar noon unless ``hour_utc`` is
    given.
    """

    name = "liljegren"
    required_columns = ["date", "tasmax", "dewp", "wind", "solar"]
    intermediate_columns = ["Tnwb", "Tg"]

    def __init__(
        self,
        n_workers: int = 4,
        pressure_hpa: float = 1010.0,
        wind_height_m: float = 10.0,
        hour_utc: Optional[float] = None,
    ):
        super().__init__(n_workers)
        self.pressure_hpa = pressure_hpa
        self.wind_height_m = wind_height_m
        self.hour_utc = hour_utc

    def compute(self, frame: pd.DataFrame, x: float, y: float) -> pd.DataFrame:
        self.validate_frame(frame)
        dates = pd.DatetimeIndex(frame["date"])

        ta_k = frame["tasmax"].values.astype(float) + 273.15
        td_k = np.minimum(frame["dewp"].values.astype(float) + 273.15, ta_k)
        speed = frame["wind"].values.astype(float)

        cza = cos_solar_zenith_angle(dates, y, x, self.hour_utc)
        solar, fdir = direct_beam_fraction(frame["solar"].values.astype(float), cza, dates)

        stability = stability_class(speed, solar, cza > 0)
        speed_2m = wind_at_reference_height(speed, self.wind_height_m, stability)

        e_hpa = esat(td_k, self.pressure_hpa)

        tg, tg_ok = globe_temperature(ta_k, e_hpa, self.pressure_hpa, speed_2m, solar, fdir, cza)
        tnwb, tnwb_ok = natural_wet_bulb(ta_k, td_k, e_hpa, self.pressure_hpa, speed_2m, solar, fdir, cza)

        failed = ~(tg_ok & tnwb_ok)
        if failed.any():
            console.print(
                f"[yellow]Liljegren solver did not converge on {int(failed.sum())} days "
                f"at ({x}, {y})[/yellow]"
            )
            tg = np.where(failed, np.nan, tg)
            tnwb = np.where(failed, np.nan, tnwb)

        tg_c = tg - 273.15
        tnwb_c = tnwb - 273.15
        wbgt = 0.7 * tnwb_c + 0.2 * tg_c + 0.1 * (ta_k - 273.15)
        return pd.DataFrame({"Tnwb": tnwb_c, "Tg": tg_c, "wbgt": wbgt}, index=frame.index)
