import asyncio
import ipaddress
import socket
import time
from typing import Optional, Tuple

from aiohttp.abc import AbstractResolver
from aiohttp.resolver import ThreadedResolver
from yarl import URL

from ..models.stats import Stats
from .base import ConstructionError, Option, Ping, ProbeError, elapsed_ns

PROXY_SCHEMES = ('http',)


def format_address(ip: str, port: int) -> str:
    if ':' in ip:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


class TCPPing(Ping):
    """Measures the time to complete a TCP handshake.

    The host is resolved first (skipped for IP literals) and the lookup is
    reported separately as the DNS duration. With an ``http://`` proxy the
    connection is tunnelled through ``CONNECT`` and the proxy resolves the
    host.
    """

    def __init__(self, url: URL, option: Optional[Option] = None):
        super().__init__(url, option)
        if not url.host:
            raise ConstructionError(f"missing host in {url}")
        if url.port is None:
            raise ConstructionError(f"missing port in {url}")
        proxy = self.option.proxy
        if proxy is not None:
            if proxy.scheme not in PROXY_SCHEMES:
                raise ConstructionError(f"unsupported proxy scheme {proxy.scheme!r} for tcp")
            if not proxy.host:
                raise ConstructionError(f"missing host in proxy {proxy}")
        self.host = url.host
        self.port = url.port
        self._resolver: Optional[AbstractResolver] = self.option.resolver

    async def ping(self) -> Stats:
        dns_duration = 0
        address = format_address(self.host, self.port)
        meta = {}
        if self.option.proxy is not None:
            meta['proxy'] = f"{self.option.proxy.host}:{self.option.proxy.port}"

        deadline = time.monotonic() + self.option.timeout
        start = time.perf_counter_ns()
        try:
            if self.option.proxy is None:
                ip, dns_duration = await asyncio.wait_for(self._resolve(), self.option.timeout)
                address = format_address(ip, self.port)
            else:
                ip = self.host

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise asyncio.TimeoutError()
            start = time.perf_counter_ns()
            await asyncio.wait_for(self._connect(ip), remaining)
        except Exception as e:
            return Stats(
                connected=False,
                error=e,
                duration=elapsed_ns(start),
                dns_duration=dns_duration,
                address=address,
                meta=meta,
            )

        return Stats(
            connected=True,
            duration=elapsed_ns(start),
            dns_duration=dns_duration,
            address=address,
            meta=meta,
        )

    async def _resolve(self) -> Tuple[str, int]:
        """Return the first address for the host and the lookup time"""
        try:
            ipaddress.ip_address(self.host)
            return self.host, 0
        except ValueError:
            pass

        if self._resolver is None:
            self._resolver = ThreadedResolver()
        start = time.perf_counter_ns()
        hosts = await self._resolver.resolve(self.host, self.port, family=socket.AF_UNSPEC)
        duration = elapsed_ns(start)
        if not hosts:
            raise ProbeError(f"no addresses found for {self.host}")
        return hosts[0]['host'], duration

    async def _connect(self, ip: str) -> None:
        proxy = self.option.proxy
        if proxy is None:
            reader, writer = await asyncio.open_connection(ip, self.port)
        else:
            reader, writer = await asyncio.open_connection(proxy.host, proxy.port)
        try:
            if proxy is not None:
                await self._tunnel(reader, writer)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                self.logger.debug(f"Error closing connection to {ip}: {e}")

    async def _tunnel(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Open an HTTP CONNECT tunnel to the target through the proxy"""
        authority = format_address(self.host, self.port)
        request = (
            f"CONNECT {authority} HTTP/1.1\r\n"
            f"Host: {authority}\r\n"
            f"User-Agent: {self.option.user_agent}\r\n"
            "\r\n"
        )
        writer.write(request.encode('latin-1'))
        await writer.drain()

        status_line = await reader.readline()
        parts = status_line.split(None, 2)
        if len(parts) < 2 or not parts[0].startswith(b'HTTP/') or parts[1] != b'200':
            status = status_line.decode('latin-1', errors='replace').strip() or 'connection closed'
            raise ProbeError(f"proxy CONNECT failed: {status}")
        # drain the remaining response headers
        while True:
            line = await reader.readline()
            if line in (b'\r\n', b'\n', b''):
                break
