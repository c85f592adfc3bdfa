from .estimator import DoubleQuantileEstimator
from .exact import ExactDoubleQuantileFinder
from .known import KnownDoubleQuantileEstimator, KnownNStrategy
from .unknown import UnknownDoubleQuantileEstimator, UnknownNStrategy

__all__ = [
    "DoubleQuantileEstimator",
    "ExactDoubleQuantileFinder",
    "KnownDoubleQuantileEstimator",
    "KnownNStrategy",
    "UnknownDoubleQuantileEstimator",
    "UnknownNStrategy",
]
