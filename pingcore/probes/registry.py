import enum
import logging
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

from yarl import URL

from .base import ConstructionError, Option, Ping, PingError
from .http import HTTPPing
from .tcp import TCPPing

Factory = Callable[[URL, Option], Ping]
K = TypeVar('K', bound=Hashable)


class UnsupportedProtocolError(PingError):
    """Raised when a protocol name cannot be parsed"""
    pass


class MissingProtocolError(ConstructionError):
    """Raised when no factory is registered for a protocol"""
    pass


class Protocol(enum.Enum):
    TCP = 'tcp'
    HTTP = 'http'
    HTTPS = 'https'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> 'Protocol':
        """Parse a protocol name, ignoring case"""
        try:
            return cls(text.lower())
        except (ValueError, AttributeError):
            raise UnsupportedProtocolError(f"unsupported protocol {text}") from None


class ProtocolRegistry(Generic[K]):
    """Maps a protocol identifier to the factory that builds its probe"""

    def __init__(self):
        self._factories: Dict[K, Factory] = {}
        self.logger = logging.getLogger(__name__)

    def register(self, protocol: K, factory: Factory) -> None:
        """Register a factory, replacing any earlier one for the protocol"""
        if protocol in self._factories:
            self.logger.debug(f"Replacing factory for {protocol}")
        self._factories[protocol] = factory

    def load(self, protocol: K) -> Optional[Factory]:
        """Return the factory for a protocol, or None"""
        return self._factories.get(protocol)

    def require(self, protocol: K) -> Factory:
        factory = self.load(protocol)
        if factory is None:
            raise MissingProtocolError(f"no pinger registered for protocol {protocol}")
        return factory

    def __contains__(self, protocol: K) -> bool:
        return protocol in self._factories


def default_registry() -> ProtocolRegistry[Protocol]:
    """Registry holding the built-in TCP, HTTP and HTTPS probes"""
    registry: ProtocolRegistry[Protocol] = ProtocolRegistry()
    registry.register(Protocol.TCP, TCPPing)
    registry.register(Protocol.HTTP, HTTPPing)
    registry.register(Protocol.HTTPS, HTTPPing)
    return registry
