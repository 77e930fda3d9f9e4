"""
WBGT models.

Each model turns one grid cell's daily climate table into daily WBGT.
"""

from .base_model import BaseWBGTModel
from .stull_model import StullModel
from .bernard_model import BernardModel
from .liljegren_model import LiljegrenModel
from .model_strategy import (
    ExecutionStrategy,
    SequentialStrategy,
    PoolStrategy,
    get_execution_strategy,
)

MODELS = {
    "stull": StullModel,
    "bernard": BernardModel,
    "liljegren": LiljegrenModel,
}


def get_model(name: str, n_workers: int = 4, **kwargs) -> BaseWBGTModel:
    """Create a WBGT model by name.

    Raises:
        ValueError: If the model name is unknown
    """
    key = name.lower()
    if key not in MODELS:
        raise ValueError(f"Unknown WBGT model: {name}. Available: {list(MODELS.keys())}")
    return MODELS[key](n_workers=n_workers, **kwargs)


__all__ = [
    "BaseWBGTModel",
    "StullModel",
    "BernardModel",
    "LiljegrenModel",
    "ExecutionStrategy",
    "SequentialStrategy",
    "PoolStrategy",
    "get_execution_strategy",
    "get_model",
    "MODELS",
]
