import logging
import sys

from .contracts import CollapseStrategy, QuantileFinder, Reporter
from .estimators import (
    DoubleQuantileEstimator,
    ExactDoubleQuantileFinder,
    KnownDoubleQuantileEstimator,
    UnknownDoubleQuantileEstimator,
)
from .factory import make_rng, new_equi_depth_phis, new_quantile_finder
from .models import QuantileFinderConfig

__all__ = [
    "CollapseStrategy",
    "DoubleQuantileEstimator",
    "ExactDoubleQuantileFinder",
    "KnownDoubleQuantileEstimator",
    "QuantileFinder",
    "QuantileFinderConfig",
    "Reporter",
    "UnknownDoubleQuantileEstimator",
    "make_rng",
    "new_equi_depth_phis",
    "new_quantile_finder",
]

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)
