from dataclasses import dataclass


@dataclass(frozen=True)
class Summary:
    """Aggregate statistics of one pinger run, durations in nanoseconds"""
    target: str = ''
    total: int = 0
    failed: int = 0
    min_duration: int = 0
    max_duration: int = 0
    avg_duration: int = 0
    p50: int = 0
    p95: int = 0
    p99: int = 0

    @property
    def successes(self) -> int:
        return self.total - self.failed
