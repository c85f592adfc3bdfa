from .selection import SelectionSampler
from .weighted import WeightedRandomSampler

__all__ = ["SelectionSampler", "WeightedRandomSampler"]
