import logging
import math
from typing import List, Sequence

from .models.stats import Stats
from .models.summary import Summary


def quantile(p: float, ordered: Sequence[float]) -> float:
    """Quantile by linear interpolation of the empirical CDF.

    ``ordered`` must be sorted ascending. Sample ``i`` (0-based) sits at
    cumulative weight ``i + 1``; the quantile for ``p`` interpolates between
    the two samples bracketing ``p * n``. ``p == 0`` gives the minimum and
    ``p == 1`` the maximum.
    """
    if not 0 <= p <= 1:
        raise ValueError(f"quantile out of range: {p}")
    n = len(ordered)
    if n == 0:
        return 0.0
    position = p * n
    index = max(math.ceil(position) - 1, 0)
    if index == 0:
        return float(ordered[0])
    lower, upper = ordered[index - 1], ordered[index]
    return lower + (position - index) * (upper - lower)


class StatsAggregator:
    """Accumulates probe durations and failures for one pinger run"""

    def __init__(self):
        self.durations: List[float] = []
        self.failed_total = 0
        self.logger = logging.getLogger(__name__)

    @property
    def total(self) -> int:
        return len(self.durations)

    @property
    def failed(self) -> int:
        return self.failed_total

    @property
    def successes(self) -> int:
        return self.total - self.failed_total

    def observe(self, stats: Stats) -> bool:
        """Record one probe result, returning False when it was skipped.

        Results aborted by cancellation are not samples and leave the
        statistics untouched.
        """
        if stats.cancelled:
            self.logger.debug("Skipping cancelled probe")
            return False
        self.durations.append(float(stats.duration))
        if not stats.connected:
            self.failed_total += 1
        return True

    def summarize(self, target: str = '') -> Summary:
        """Compute summary statistics over every recorded sample"""
        if not self.durations:
            return Summary(target=target)

        ordered = sorted(self.durations)
        return Summary(
            target=target,
            total=self.total,
            failed=self.failed_total,
            min_duration=int(ordered[0]),
            max_duration=int(ordered[-1]),
            avg_duration=int(math.fsum(ordered) / len(ordered)),
            p50=int(quantile(0.50, ordered)),
            p95=int(quantile(0.95, ordered)),
            p99=int(quantile(0.99, ordered)),
        )
