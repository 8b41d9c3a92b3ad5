"""Token estimation, cost accounting, and the session cost ledger."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from docquery.config import LedgerConfig, PricingConfig
from docquery.obs.logging import get_logger
from docquery.types import CostPhase, CostRecord

logger = get_logger(__name__)


class TokenEstimator(Protocol):
    """Approximates how many provider tokens a text will be billed as."""

    def __call__(self, text: str) -> int:
        ...


@dataclass(slots=True)
class CharRatioEstimator:
    """Fixed characters-per-token heuristic; an approximation, not a tokenizer."""

    chars_per_token: float = 4.0

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)


@dataclass(slots=True)
class CostModel:
    """Simple token pricing model (USD per 1K tokens)."""

    input_per_1k: float = 0.00125
    output_per_1k: float = 0.005

    @classmethod
    def from_config(cls, config: PricingConfig) -> "CostModel":
        return cls(input_per_1k=config.input_per_1k, output_per_1k=config.output_per_1k)

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens / 1000.0) * self.input_per_1k + (
            output_tokens / 1000.0
        ) * self.output_per_1k


@dataclass(slots=True)
class PhaseTotals:
    operations: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0


class CostLedger:
    """Append-only record of every transport invocation in a session.

    Records are never trimmed, so `total_cost()` always equals the sum of the
    record costs. Reporting views (`recent`, `summary`) are bounded instead.
    """

    def __init__(
        self,
        *,
        cost_model: CostModel | None = None,
        config: LedgerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cost_model = cost_model or CostModel()
        self.config = config or LedgerConfig()
        self._clock = clock
        self._records: list[CostRecord] = []
        self._session_start = clock()

    def record(
        self,
        operation: str,
        phase: CostPhase,
        input_tokens: int,
        output_tokens: int,
        details: str = "",
    ) -> CostRecord:
        entry = CostRecord(
            timestamp=self._clock(),
            operation=operation,
            phase=phase,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=self.cost_model.estimate_cost(input_tokens, output_tokens),
            details=details,
        )
        self._records.append(entry)
        logger.debug(
            "cost_recorded",
            operation=operation,
            phase=phase.value,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=entry.cost,
        )
        if entry.cost > 0:
            self._check_budget()
        return entry

    def records(self) -> list[CostRecord]:
        return list(self._records)

    def total_cost(self) -> float:
        return sum(record.cost for record in self._records)

    def total_tokens(self) -> tuple[int, int]:
        return (
            sum(record.input_tokens for record in self._records),
            sum(record.output_tokens for record in self._records),
        )

    def breakdown_by_phase(self) -> dict[str, PhaseTotals]:
        return self._group(lambda record: record.phase.value)

    def breakdown_by_operation(self) -> dict[str, PhaseTotals]:
        return self._group(lambda record: record.operation)

    def session_duration_seconds(self) -> float:
        return self._clock() - self._session_start

    def recent(self, limit: int | None = None) -> list[CostRecord]:
        """Most recent records, newest first, capped at the configured limit."""
        cap = self.config.recent_limit if limit is None else min(limit, self.config.recent_limit)
        if cap <= 0:
            return []
        return list(reversed(self._records[-cap:]))

    def budget_status(self) -> dict[str, float | bool]:
        spent = self.total_cost()
        usage = spent / self.config.budget
        return {
            "budget": self.config.budget,
            "spent": spent,
            "remaining": max(0.0, self.config.budget - spent),
            "usage": usage,
            "warning": usage >= self.config.warning_threshold,
            "exceeded": usage >= 1.0,
        }

    def summary(self) -> dict[str, float | int]:
        """Aggregate session spend for dashboard display."""
        total = len(self._records)
        total_in, total_out = self.total_tokens()
        total_cost = self.total_cost()
        return {
            "total_operations": total,
            "total_input_tokens": total_in,
            "total_output_tokens": total_out,
            "total_cost": total_cost,
            "average_cost_per_operation": total_cost / total if total else 0.0,
            "error_count": sum(1 for r in self._records if r.phase is CostPhase.ERROR),
            "session_duration_seconds": self.session_duration_seconds(),
        }

    def reset(self) -> None:
        self._records.clear()
        self._session_start = self._clock()

    def __len__(self) -> int:
        return len(self._records)

    def _group(self, key: Callable[[CostRecord], str]) -> dict[str, PhaseTotals]:
        groups: dict[str, PhaseTotals] = {}
        for record in self._records:
            totals = groups.setdefault(key(record), PhaseTotals())
            totals.operations += 1
            totals.input_tokens += record.input_tokens
            totals.output_tokens += record.output_tokens
            totals.cost += record.cost
        return groups

    def _check_budget(self) -> None:
        status = self.budget_status()
        if status["exceeded"]:
            logger.error("budget_exceeded", spent=status["spent"], budget=status["budget"])
        elif status["warning"]:
            logger.warning(
                "budget_warning",
                spent=status["spent"],
                budget=status["budget"],
                usage=round(float(status["usage"]), 3),
            )


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
