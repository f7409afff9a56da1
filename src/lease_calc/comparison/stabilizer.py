from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Iterable, Mapping, Sequence

from lease_calc.comparison.evaluator import RankedVehicle, evaluate
from lease_calc.pricing.overrides import Overrides
from lease_calc.residual.advisory import BASELINE_MILES_PER_YEAR
from lease_calc.vehicles.record import LeaseVehicle

logger = logging.getLogger(__name__)

DEFAULT_QUIESCENCE_SECONDS = 1.5


class RankingState(enum.Enum):
    EDITING = "editing"
    SETTLED = "settled"


class RankingStabilizer:
    """
    Keeps edited rows from jumping around while the user is still typing.

    Settled: rank purely by payment and remember that order as the baseline.
    Editing: rows with per-vehicle overrides hold their baseline slots.
    Editing turns into Settled once `quiescence` seconds pass with no edit.
    """

    def __init__(
        self,
        *,
        quiescence: float = DEFAULT_QUIESCENCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if quiescence < 0:
            raise ValueError("quiescence must be >= 0")
        self.quiescence = float(quiescence)
        self._clock = clock
        self._last_edit: float | None = None
        self._baseline: list[str] | None = None
        self._last_inputs: dict[str, Any] | None = None

    @property
    def state(self) -> RankingState:
        if self._last_edit is None or self._clock() - self._last_edit >= self.quiescence:
            return RankingState.SETTLED
        return RankingState.EDITING

    @property
    def baseline(self) -> list[str] | None:
        return None if self._baseline is None else list(self._baseline)

    def note_edit(self) -> None:
        if self.state is RankingState.SETTLED:
            if self._last_edit is not None and self._last_inputs is not None:
                # The quiet window passed with no rank() call; settle on the last inputs first.
                self._capture_baseline(evaluate(**self._last_inputs, settled_order=None))
            logger.debug("ranking state: settled -> editing")
        self._last_edit = self._clock()

    def _capture_baseline(self, ranked: Sequence[RankedVehicle]) -> None:
        self._baseline = [r.vehicle.id for r in ranked]
        self._last_edit = None
        logger.debug("ranking settled; baseline=%s", self._baseline)

    def rank(
        self,
        vehicles: Sequence[LeaseVehicle],
        selected_ids: Iterable[str],
        *,
        global_down_payment: float | None = None,
        per_vehicle_overrides: Mapping[str, Overrides] | None = None,
        miles_per_year: int = BASELINE_MILES_PER_YEAR,
    ) -> list[RankedVehicle]:
        inputs: dict[str, Any] = {
            "vehicles": list(vehicles),
            "selected_ids": list(selected_ids),
            "global_down_payment": global_down_payment,
            "per_vehicle_overrides": dict(per_vehicle_overrides or {}),
            "miles_per_year": miles_per_year,
        }
        settled = self.state is RankingState.SETTLED
        ranked = evaluate(**inputs, settled_order=None if settled else self._baseline)
        self._last_inputs = inputs
        if settled:
            self._capture_baseline(ranked)
        return ranked
