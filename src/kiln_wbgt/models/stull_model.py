#!/usr/bin/env python
"""Stull (2011) wet-bulb heat-stress model."""

import pandas as pd

from .base_model import BaseWBGTModel
from ..utils.psychrometrics import stull_wet_bulb


class StullModel(BaseWBGTModel):
    """WBGT approximated by the Stull wet-bulb temperature of the daily maximum.

    Uses daily maximum temperature and relative humidity only, so it is
    cheap enough to run sequentially over every cell.
    """

    name = "stull"
    required_columns = ["tasmax", "hurs"]
    intermediate_columns = []

    def compute(self, frame: pd.DataFrame, x: float, y: float) -> pd.DataFrame:
        self.validate_frame(frame)
        wbgt = stull_wet_bulb(frame["tasmax"].values, frame["hurs"].values)
        return pd.DataFrame({"wbgt": wbgt}, index=frame.index)
