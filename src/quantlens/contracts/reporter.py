from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quantlens.models import PlanRow, QuantileReport


class Reporter(ABC):
    """Render estimation results for presentation."""

    @abstractmethod
    def render(self, report: QuantileReport) -> None:
        """Render quantile estimates to the configured output."""
        raise NotImplementedError

    @abstractmethod
    def render_plan(self, rows: Sequence[PlanRow]) -> None:
        """Render a table of solver memory requirements."""
        raise NotImplementedError
