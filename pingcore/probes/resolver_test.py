import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as AppServer
from yarl import URL

from .base import Option
from .http import HTTPPing
from .resolver import PinnedResolver


@pytest.mark.asyncio
async def test_resolves_any_host_to_pinned_address():
	resolver = PinnedResolver('10.0.0.7')
	hosts = await resolver.resolve('example.com', 443)

	assert len(hosts) == 1
	assert hosts[0]['host'] == '10.0.0.7'
	assert hosts[0]['hostname'] == 'example.com'
	assert hosts[0]['port'] == 443
	assert hosts[0]['family'] == socket.AF_INET
	await resolver.close()


@pytest.mark.asyncio
async def test_ipv6_family():
	hosts = await PinnedResolver('::1').resolve('example.com', 80)
	assert hosts[0]['family'] == socket.AF_INET6
	assert hosts[0]['host'] == '::1'


def test_rejects_invalid_address():
	with pytest.raises(ValueError):
		PinnedResolver('example.com')


@pytest.mark.network
@pytest.mark.asyncio
async def test_http_request_keeps_host_header():
	seen_hosts = []

	async def echo_host(request):
		seen_hosts.append(request.host)
		return web.Response(text='ok')

	app = web.Application()
	app.router.add_get('/', echo_host)
	server = AppServer(app, host='127.0.0.1')
	await server.start_server()
	try:
		url = URL(f'http://pinned.invalid:{server.port}/')
		option = Option(timeout=2, resolver=PinnedResolver('127.0.0.1'))
		stats = await HTTPPing(url, option).ping()
	finally:
		await server.close()

	assert stats.connected, stats.error
	assert stats.address.startswith('127.0.0.1:')
	assert seen_hosts == [f'pinned.invalid:{url.port}']
