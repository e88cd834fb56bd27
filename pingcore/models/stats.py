import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


def error_chain(error: Optional[BaseException]) -> Iterator[BaseException]:
    """Yield an error and everything it wraps, outermost first.

    Follows aiohttp's ``os_error`` attribute as well as ``__cause__`` and
    ``__context__``, visiting each exception once.
    """
    seen = set()
    pending = [error] if error is not None else []
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.append(getattr(current, 'os_error', None))
        pending.append(current.__cause__)
        if not current.__suppress_context__:
            pending.append(current.__context__)


@dataclass(frozen=True)
class Stats:
    """Outcome of a single probe attempt"""
    connected: bool = False
    error: Optional[BaseException] = None
    duration: int = 0  # nanoseconds
    dns_duration: int = 0  # nanoseconds, 0 when no lookup happened
    address: str = ''
    meta: Mapping[str, Any] = field(default_factory=dict)
    extra: Optional[Any] = None

    def __post_init__(self):
        object.__setattr__(self, 'meta', MappingProxyType(dict(self.meta)))

    @property
    def cancelled(self) -> bool:
        """True when the probe was aborted by task cancellation"""
        return any(isinstance(err, asyncio.CancelledError) for err in error_chain(self.error))

    def format_meta(self) -> str:
        """Render meta as space separated key=value pairs sorted by key"""
        return ' '.join(f"{key}={self.meta[key]}" for key in sorted(self.meta))
