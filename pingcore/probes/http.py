import time
from typing import Any, Dict, Optional

import aiohttp
from yarl import URL

from ..models.stats import Stats
from .base import ConstructionError, Option, Ping, ProbeError, elapsed_ns
from .tcp import format_address

HTTP_SCHEMES = ('http', 'https')
PROXY_SCHEMES = ('http', 'https')


class HTTPStatusError(ProbeError):
    """Raised for responses with an error status code"""

    def __init__(self, status: int, reason: Optional[str] = None):
        self.status = status
        self.reason = reason
        message = f"unexpected status code {status}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class HTTPPing(Ping):
    """Measures a complete GET request, body included.

    Every attempt opens a fresh session without keep-alive or DNS cache so
    that each sample pays for lookup, handshake and transfer.
    """

    def __init__(self, url: URL, option: Optional[Option] = None):
        super().__init__(url, option)
        if url.scheme not in HTTP_SCHEMES:
            raise ConstructionError(f"unsupported scheme {url.scheme!r} for http")
        if not url.host:
            raise ConstructionError(f"missing host in {url}")
        proxy = self.option.proxy
        if proxy is not None and proxy.scheme not in PROXY_SCHEMES:
            raise ConstructionError(f"unsupported proxy scheme {proxy.scheme!r} for http")

    def _trace_config(self, timings: Dict[str, int]) -> aiohttp.TraceConfig:
        async def on_dns_start(session, context, params):
            timings['dns_start'] = time.perf_counter_ns()

        async def on_dns_end(session, context, params):
            timings['dns_end'] = time.perf_counter_ns()

        trace_config = aiohttp.TraceConfig()
        trace_config.on_dns_resolvehost_start.append(on_dns_start)
        trace_config.on_dns_resolvehost_end.append(on_dns_end)
        return trace_config

    async def ping(self) -> Stats:
        timings: Dict[str, int] = {}
        meta: Dict[str, Any] = {}
        address = ''
        error: Optional[Exception] = None

        connector = aiohttp.TCPConnector(
            resolver=self.option.resolver,
            use_dns_cache=False,
            force_close=True,
        )
        timeout = aiohttp.ClientTimeout(total=self.option.timeout)
        headers = {'User-Agent': self.option.user_agent}
        proxy = str(self.option.proxy) if self.option.proxy is not None else None

        start = time.perf_counter_ns()
        try:
            async with aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=headers,
                trace_configs=[self._trace_config(timings)],
            ) as session:
                async with session.get(self.url, proxy=proxy, allow_redirects=False) as response:
                    address = self._peer_address(response)
                    body = await response.read()
                    meta['status'] = response.status
                    meta['bytes'] = len(body)
                    if response.status >= 400:
                        error = HTTPStatusError(response.status, response.reason)
        except Exception as e:
            error = e
        duration = elapsed_ns(start)

        dns_duration = 0
        if 'dns_start' in timings and 'dns_end' in timings:
            dns_duration = timings['dns_end'] - timings['dns_start']

        return Stats(
            connected=error is None,
            error=error,
            duration=duration,
            dns_duration=dns_duration,
            address=address,
            meta=meta,
        )

    @staticmethod
    def _peer_address(response: aiohttp.ClientResponse) -> str:
        connection = response.connection
        if connection is None or connection.transport is None:
            return ''
        peername = connection.transport.get_extra_info('peername')
        if not peername:
            return ''
        return format_address(peername[0], peername[1])
