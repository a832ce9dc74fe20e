"""
Replan Scheduler
Runs one bounded-time replan per cycle and keeps the planning-time
histogram. A failed replan is reported, never retried.
"""

import time
import logging
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field

from gridnav.planning.global_planner.planner_interface import SearchPlanner

DEFAULT_TIME_BUDGET = 0.2


@dataclass
class TimingHistogram:
    """Planning times in five exclusive buckets."""

    over_1s: int = 0
    over_0p5s: int = 0
    over_0p1s: int = 0
    over_0p05s: int = 0
    below_0p05s: int = 0

    def record(self, elapsed: float):
        if elapsed > 1.0:
            self.over_1s += 1
        elif elapsed > 0.5:
            self.over_0p5s += 1
        elif elapsed > 0.1:
            self.over_0p1s += 1
        elif elapsed > 0.05:
            self.over_0p05s += 1
        else:
            self.below_0p05s += 1

    @property
    def total(self) -> int:
        return self.over_1s + self.over_0p5s + self.over_0p1s + self.over_0p05s + self.below_0p05s

    def as_dict(self) -> Dict[str, int]:
        return {
            'over_1s': self.over_1s,
            'over_0p5s': self.over_0p5s,
            'over_0p1s': self.over_0p1s,
            'over_0p05s': self.over_0p05s,
            'below_0p05s': self.below_0p05s,
        }

    def summary_line(self) -> str:
        return (f"stats: plantimes over 1 secs={self.over_1s}; "
                f"over 0.5 secs={self.over_0p5s}; "
                f"over 0.1 secs={self.over_0p1s}; "
                f"over 0.05 secs={self.over_0p05s}; "
                f"below 0.05 secs={self.below_0p05s}")


@dataclass
class ReplanResult:
    """Outcome of a single bounded replan."""

    success: bool
    path: List[int] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    solution_eps: Optional[float] = None


class ReplanScheduler:
    """
    Invokes planner.replan() once per cycle under a fixed time budget.
    """

    def __init__(self, planner: SearchPlanner, config: Dict[str, Any] = None):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.planner = planner
        self.time_budget = float(self.config.get("time_budget", DEFAULT_TIME_BUDGET))
        if self.time_budget <= 0:
            raise ValueError(f"time_budget must be > 0, got {self.time_budget}")

        self.histogram = TimingHistogram()

        self.scheduler_statistics = {
            'total_replans': 0,
            'successful_replans': 0,
            'failed_replans': 0,
            'total_planning_time': 0.0,
            'average_planning_time': 0.0,
            'max_planning_time': 0.0,
            'last_solution_eps': None,
        }

        self.logger.info(f"Replan scheduler initialized: budget {self.time_budget:.3f}s")

    def replan_once(self, time_budget: Optional[float] = None) -> ReplanResult:
        budget = self.time_budget if time_budget is None else float(time_budget)

        start_time = time.time()
        success, path = self.planner.replan(budget)
        elapsed = time.time() - start_time

        stats = self.scheduler_statistics
        stats['total_replans'] += 1
        stats['total_planning_time'] += elapsed
        stats['average_planning_time'] = stats['total_planning_time'] / stats['total_replans']
        stats['max_planning_time'] = max(stats['max_planning_time'], elapsed)

        if not success:
            stats['failed_replans'] += 1
            self.logger.error(f"Replan failed after {elapsed:.4f}s (budget {budget:.3f}s)")
            return ReplanResult(success=False, elapsed_seconds=elapsed)

        eps = self.planner.get_solution_eps()
        self.histogram.record(elapsed)

        stats['successful_replans'] += 1
        stats['last_solution_eps'] = eps

        self.logger.debug(f"Replan: {len(path)} states, eps={eps:.3f}, {elapsed:.4f}s")
        return ReplanResult(success=True, path=list(path), elapsed_seconds=elapsed, solution_eps=eps)

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.scheduler_statistics.copy()
        stats['histogram'] = self.histogram.as_dict()
        return stats
