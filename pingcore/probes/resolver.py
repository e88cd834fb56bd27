import ipaddress
import socket
from typing import List

from aiohttp.abc import AbstractResolver, ResolveResult


class PinnedResolver(AbstractResolver):
    """Resolves every host to one fixed address.

    Used when the target carries an IP so that both TCP and HTTP probes skip
    the lookup while HTTP keeps sending the original Host header and SNI.
    """

    def __init__(self, ip: str):
        self.address = ipaddress.ip_address(ip)

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET) -> List[ResolveResult]:
        ip_family = socket.AF_INET6 if self.address.version == 6 else socket.AF_INET
        return [ResolveResult(
            hostname=host,
            host=str(self.address),
            port=port,
            family=ip_family,
            proto=0,
            flags=socket.AI_NUMERICHOST,
        )]

    async def close(self) -> None:
        pass
