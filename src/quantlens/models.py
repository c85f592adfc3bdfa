from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class QuantileFinderConfig(BaseModel):
    """Parameters a caller hands to the finder factory."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    epsilon: float = Field(default=0.001, ge=0.0, le=1.0)
    delta: float = Field(default=0.0001, ge=0.0, le=1.0)
    quantiles: int = Field(default=100, ge=1)
    n: int | None = Field(default=None, ge=0)
    known_n: bool = False
    seed: int | None = None


class KnownNParameters(BaseModel):
    """Buffer layout for a stream of known length."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    b: int
    k: int
    sampling_rate: float = 1.0

    @property
    def exact(self) -> bool:
        return self.b == 1

    @property
    def memory(self) -> int:
        return self.b * self.k


class UnknownNParameters(BaseModel):
    """Buffer layout for a stream of unknown length.

    ``k`` and ``h`` are ``None`` when no approximate layout exists and the
    caller has to fall back to exact computation.
    """

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    b: int
    k: int | None = None
    h: int | None = None
    precompute: bool = False

    @property
    def exact(self) -> bool:
        return self.b == 1

    @property
    def memory(self) -> int | None:
        if self.k is None:
            return None
        return self.b * self.k


class QuantileReport(BaseModel):
    """Quantile estimates produced for one input stream."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    source: str
    finder: str
    b: int | None = None
    k: int | None = None
    size: int
    memory: int
    total_memory: int
    phis: list[float]
    quantiles: list[float]


class PlanRow(BaseModel):
    """Memory requirement of one parameter combination."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    quantiles: int
    n: int | None
    epsilon: float
    delta: float
    known_n: bool
    b: int
    k: int | None
    memory: int | None
