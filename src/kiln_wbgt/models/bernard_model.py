#!/usr/bin/env python
"""Bernard (1999) indoor WBGT model."""

import pandas as pd

from .base_model import BaseWBGTModel
from ..utils.psychrometrics import psychrometric_wet_bulb, STANDARD_PRESSURE_PA


class BernardModel(BaseWBGTModel):
    """Shade WBGT from the psychrometric wet bulb: 0.67 Tpwb + 0.33 Ta."""

    name = "bernard"
    required_columns = ["tasmax", "dewp"]
    intermediate_columns = ["Tpwb"]

    def __init__(self, n_workers: int = 4, pressure_pa: float = STANDARD_PRESSURE_PA):
        super().__init__(n_workers)
        self.pressure_pa = pressure_pa

    def compute(self, frame: pd.DataFrame, x: float, y: float) -> pd.DataFrame:
        self.validate_frame(frame)
        tasmax = frame["tasmax"].values
        tpwb = psychrometric_wet_bulb(tasmax, frame["dewp"].values, self.pressure_pa)
        return pd.DataFrame(
            {"Tpwb": tpwb, "wbgt": 0.67 * tpwb + 0.33 * tasmax},
            index=frame.index,
        )
