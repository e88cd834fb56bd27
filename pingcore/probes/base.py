from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import time
from typing import Optional

from aiohttp.abc import AbstractResolver
from yarl import URL

from ..models.stats import Stats

DEFAULT_TIMEOUT = 1.0
DEFAULT_USER_AGENT = 'tcping/1.0'


class PingError(Exception):
    """Base exception for tcping errors"""
    pass


class ConstructionError(PingError):
    """Raised when a probe cannot be built from its URL and options"""
    pass


class ProbeError(PingError):
    """Failure of a single probe attempt, carried in Stats.error"""
    pass


@dataclass
class Option:
    """Options handed to every protocol factory"""
    timeout: float = DEFAULT_TIMEOUT
    resolver: Optional[AbstractResolver] = None
    proxy: Optional[URL] = None
    user_agent: str = DEFAULT_USER_AGENT


class Ping(ABC):
    """A single kind of probe against a single endpoint.

    ``ping`` performs exactly one attempt and always returns a Stats record;
    network failures are reported through ``Stats.error`` with
    ``connected=False``. The attempt is cancelled by cancelling the task that
    awaits it, and implementations must let ``asyncio.CancelledError``
    propagate. Each implementation bounds its own attempt with
    ``Option.timeout``.
    """

    def __init__(self, url: URL, option: Optional[Option] = None):
        self.url = url
        self.option = option or Option()
        self.logger = logging.getLogger(self.__class__.__module__)

    @abstractmethod
    async def ping(self) -> Stats:
        """Execute one probe attempt"""
        raise NotImplementedError("Subclasses must implement ping()")


def elapsed_ns(start: int) -> int:
    """Nanoseconds since a time.perf_counter_ns() reading"""
    return time.perf_counter_ns() - start
