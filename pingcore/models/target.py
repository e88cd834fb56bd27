from dataclasses import dataclass
from typing import Optional

from yarl import URL

from ..probes.registry import Protocol

DEFAULT_PORTS = {
    Protocol.TCP: 80,
    Protocol.HTTP: 80,
    Protocol.HTTPS: 443,
}


@dataclass(frozen=True)
class Target:
    """What to probe and how often"""
    protocol: Protocol
    host: str
    port: int
    ip: Optional[str] = None
    proxy: Optional[str] = None
    path: str = '/'
    query: str = ''

    counter: int = 0
    interval: float = 1.0
    timeout: float = 1.0

    def __str__(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def url(self) -> URL:
        """URL handed to the protocol factory"""
        if self.protocol is Protocol.TCP:
            return URL.build(scheme=str(self.protocol), host=self.host, port=self.port)
        return URL.build(scheme=str(self.protocol), host=self.host, port=self.port,
                         path=self.path or '/', query_string=self.query)
