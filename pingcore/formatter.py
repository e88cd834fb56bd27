import asyncio
import os
import socket
import sys
from datetime import datetime
from typing import Callable, Optional, TextIO

import aiohttp
from colorama import Fore, Style

from .models.stats import Stats, error_chain
from .models.summary import Summary

TIMEOUT_ERRORS = (
    asyncio.TimeoutError,
    TimeoutError,
    socket.timeout,
    aiohttp.ServerTimeoutError,
    asyncio.CancelledError,
)

SUMMARY_TEMPLATE = """
Ping statistics {target}
\t{total} probes sent.
\t{successes} successful, {failed} failed.
Approximate trip times:
\tMinimum = {minimum}
\tMaximum = {maximum}
\tAverage = {average}
\tp50     = {p50}
\tp95     = {p95}
\tp99     = {p99}
"""


def classify_error(error: BaseException) -> str:
    """Turn a probe error into a short operator-facing reason.

    Any timeout or cancellation anywhere in the chain reads "timeout"; an
    OS level socket error reads as its raw OS message; anything else falls
    back to its own text.
    """
    chain = list(error_chain(error))
    if any(isinstance(err, TIMEOUT_ERRORS) for err in chain):
        return 'timeout'
    for err in chain:
        if isinstance(err, socket.gaierror) and err.strerror:
            return err.strerror
        if isinstance(err, OSError):
            if isinstance(err.errno, int) and err.errno > 0:
                return os.strerror(err.errno)
            if err.strerror:
                return err.strerror
    return str(error) or error.__class__.__name__


def format_duration_ms(duration: int) -> str:
    """Render nanoseconds as milliseconds rounded to the microsecond"""
    micros = (abs(int(duration)) + 500) // 1000
    if duration < 0:
        micros = -micros
    return f"{micros / 1000:.3f}ms"


def _decimal(value: int, unit: int, digits: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    return f"{whole}.{str(frac).rjust(digits, '0').rstrip('0')}"


def format_duration(duration: int) -> str:
    """Render nanoseconds the way Go prints a time.Duration (1.5s, 12.3ms)"""
    duration = int(duration)
    if duration == 0:
        return '0s'
    sign = '-' if duration < 0 else ''
    duration = abs(duration)
    if duration < 1_000:
        return f"{sign}{duration}ns"
    if duration < 1_000_000:
        return f"{sign}{_decimal(duration, 1_000, 3)}µs"
    if duration < 1_000_000_000:
        return f"{sign}{_decimal(duration, 1_000_000, 6)}ms"

    hours, rest = divmod(duration, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    seconds = _decimal(rest, 1_000_000_000, 9)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def format_timestamp(moment: datetime) -> str:
    """Mon dd HH:MM:SS.mmm with a space padded day"""
    return f"{moment:%b} {moment.day:>2} {moment:%H:%M:%S}.{moment.microsecond // 1000:03d}"


def is_terminal(out: Optional[TextIO]) -> bool:
    if out is None:
        return False
    isatty = getattr(out, 'isatty', None)
    if isatty is None:
        return False
    try:
        return bool(isatty())
    except ValueError:
        # closed stream
        return False


class ResultFormatter:
    """Writes one line per probe and the final summary to a text stream"""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        terminal: Callable[[Optional[TextIO]], bool] = is_terminal,
        clock: Callable[[], datetime] = datetime.now,
        color: bool = True,
    ):
        self.out = out if out is not None else sys.stdout
        self.terminal = terminal
        self.clock = clock
        self.color = color

    def format_result(self, target: str, stats: Stats) -> str:
        timestamp = format_timestamp(self.clock())
        durations = f"time={format_duration_ms(stats.duration)} dns={format_duration_ms(stats.dns_duration)}"

        if stats.error is not None:
            line = (
                f"{timestamp}: Ping {target}({stats.address}) "
                f"Failed({classify_error(stats.error)}) - {durations}"
            )
            if self.color and self.terminal(self.out):
                line = f"{Fore.RED}{line}{Style.RESET_ALL}"
        else:
            status = 'connected' if stats.connected else 'Failed'
            line = f"{timestamp}: Ping {target}({stats.address}) {status} - {durations}"

        if stats.meta:
            line = f"{line} {stats.format_meta()}"
        line += "\n"
        if stats.extra is not None:
            line += f" {str(stats.extra).strip()}\n"
        return line

    def print_result(self, target: str, stats: Stats) -> None:
        self.out.write(self.format_result(target, stats))
        self.out.flush()

    def format_summary(self, summary: Summary) -> str:
        return SUMMARY_TEMPLATE.format(
            target=summary.target,
            total=summary.total,
            successes=summary.successes,
            failed=summary.failed,
            minimum=format_duration(summary.min_duration),
            maximum=format_duration(summary.max_duration),
            average=format_duration(summary.avg_duration),
            p50=format_duration(summary.p50),
            p95=format_duration(summary.p95),
            p99=format_duration(summary.p99),
        )

    def print_summary(self, summary: Summary) -> None:
        self.out.write(self.format_summary(summary))
        self.out.flush()
