import pytest
from yarl import URL

from .base import ConstructionError, Option, Ping, PingError
from .http import HTTPPing
from .registry import (
	MissingProtocolError,
	Protocol,
	ProtocolRegistry,
	UnsupportedProtocolError,
	default_registry,
)
from .tcp import TCPPing
from ..models.stats import Stats


class StubPing(Ping):
	"""Test implementation of Ping"""
	async def ping(self) -> Stats:
		return Stats(connected=True)


@pytest.mark.parametrize('text,expected', [
	('tcp', Protocol.TCP),
	('TCP', Protocol.TCP),
	('Http', Protocol.HTTP),
	('HTTPS', Protocol.HTTPS),
])
def test_parse_ignores_case(text, expected):
	assert Protocol.parse(text) is expected


def test_string_form_is_lowercase():
	assert [str(p) for p in Protocol] == ['tcp', 'http', 'https']
	assert Protocol.parse(str(Protocol.HTTPS)) is Protocol.HTTPS


def test_parse_unknown_protocol():
	with pytest.raises(UnsupportedProtocolError) as excinfo:
		Protocol.parse('icmp')
	assert str(excinfo.value) == "unsupported protocol icmp"
	assert isinstance(excinfo.value, PingError)


def test_register_and_load():
	registry = ProtocolRegistry()
	assert registry.load(Protocol.TCP) is None
	assert Protocol.TCP not in registry

	registry.register(Protocol.TCP, StubPing)
	assert registry.load(Protocol.TCP) is StubPing
	assert Protocol.TCP in registry


def test_register_replaces_existing():
	registry = ProtocolRegistry()
	registry.register(Protocol.HTTP, HTTPPing)
	registry.register(Protocol.HTTP, StubPing)
	assert registry.load(Protocol.HTTP) is StubPing


def test_require_missing_protocol():
	registry = ProtocolRegistry()
	with pytest.raises(MissingProtocolError):
		registry.require(Protocol.HTTPS)
	assert issubclass(MissingProtocolError, ConstructionError)


def test_registry_accepts_other_keys():
	registry = ProtocolRegistry()
	registry.register('stub', StubPing)
	ping = registry.require('stub')(URL('stub://host:1'), Option())
	assert isinstance(ping, StubPing)


def test_default_registry():
	registry = default_registry()
	assert registry.load(Protocol.TCP) is TCPPing
	assert registry.load(Protocol.HTTP) is HTTPPing
	assert registry.load(Protocol.HTTPS) is HTTPPing


def test_factories_build_probes():
	registry = default_registry()
	tcp = registry.require(Protocol.TCP)(URL('tcp://127.0.0.1:22'), Option(timeout=2))
	assert isinstance(tcp, TCPPing)
	assert tcp.option.timeout == 2

	https = registry.require(Protocol.HTTPS)(URL('https://example.com/health'), Option())
	assert isinstance(https, HTTPPing)
