from .collapse_strategy import CollapseStrategy
from .quantile_finder import QuantileFinder
from .reporter import Reporter

__all__ = [
    "CollapseStrategy",
    "QuantileFinder",
    "Reporter",
]
