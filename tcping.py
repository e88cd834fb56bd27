#!/usr/bin/env python3

import sys
import signal
import asyncio
import argparse
import ipaddress
from typing import List, Optional

from aiohttp.resolver import AsyncResolver
from yarl import URL

from pingcore.formatter import ResultFormatter
from pingcore.models.summary import Summary
from pingcore.models.target import DEFAULT_PORTS, Target
from pingcore.pinger import Pinger
from pingcore.probes.base import ConstructionError, Option, PingError
from pingcore.probes.registry import Protocol, ProtocolRegistry, default_registry
from pingcore.probes.resolver import PinnedResolver
from pingcore.utils.config import ConfigError, ConfigManager, ProbeConfig
from pingcore.utils.logger import Logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='tcping',
        description='Probe a TCP, HTTP or HTTPS endpoint and report latency'
    )
    parser.add_argument('host', help='Target host, or a URL such as https://example.com/health')
    parser.add_argument('port', nargs='?', type=int, help='Target port (default 80, 443 for https)')
    parser.add_argument('-c', '--counter', type=int, help='Probes to count before stopping, 0 runs until interrupted')
    parser.add_argument('-i', '--interval', type=float, help='Seconds between probes')
    parser.add_argument('-t', '--timeout', type=float, help='Per-probe timeout in seconds')
    parser.add_argument('--proxy', help='Proxy URL, e.g. http://127.0.0.1:3128')
    parser.add_argument('--dns-server', help='Resolve the host through this nameserver (needs aiodns)')
    parser.add_argument('--ip', help='Connect to this address instead of resolving the host')
    parser.add_argument('--user-agent', help='User-Agent header for http and https probes')
    parser.add_argument('--config', help='Custom config file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--log-dir', help='Also write logs to this directory')
    return parser.parse_args(argv)


def _pick(value, default):
    return default if value is None else value


def build_target(args: argparse.Namespace, probe: ProbeConfig) -> Target:
    """Build the target from the command line, falling back to config"""
    text = args.host
    path, query = '/', ''
    try:
        if '://' in text:
            url = URL(text)
            protocol = Protocol.parse(url.scheme)
            host = url.host
            port = args.port or url.port or DEFAULT_PORTS[protocol]
            path, query = url.raw_path or '/', url.raw_query_string
        else:
            protocol = Protocol.TCP
            host = text
            port = args.port or DEFAULT_PORTS[protocol]
    except ValueError as e:
        raise ConfigError(f"Invalid target {text!r}: {e}") from e

    if not host:
        raise ConfigError(f"Invalid target {text!r}: missing host")
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid port {port}")

    proxy = _pick(args.proxy, probe.proxy)
    if proxy:
        try:
            proxy_url = URL(proxy)
        except ValueError as e:
            raise ConfigError(f"Invalid proxy URL {proxy!r}: {e}") from e
        if not proxy_url.scheme or not proxy_url.host:
            raise ConfigError(f"Invalid proxy URL {proxy!r}")

    if args.ip:
        try:
            ipaddress.ip_address(args.ip)
        except ValueError as e:
            raise ConfigError(f"Invalid IP address {args.ip!r}") from e

    timeout = _pick(args.timeout, probe.timeout)
    interval = _pick(args.interval, probe.interval)
    if timeout <= 0:
        raise ConfigError(f"timeout must be positive, got {timeout}")
    if interval < 0:
        raise ConfigError(f"interval must not be negative, got {interval}")

    target = Target(
        protocol=protocol,
        host=host,
        port=port,
        ip=args.ip or None,
        proxy=proxy or None,
        path=path,
        query=query,
        counter=_pick(args.counter, probe.counter),
        interval=interval,
        timeout=timeout,
    )
    try:
        # yarl rejects hosts such as "example.com:8080"
        target.url
    except ValueError as e:
        raise ConfigError(f"Invalid target {text!r}: {e}") from e
    return target


def _install_signal_handlers(pinger: Pinger) -> List[signal.Signals]:
    """Stop the pinger on SIGINT/SIGTERM"""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in [signal.SIGINT, signal.SIGTERM]:
        try:
            loop.add_signal_handler(sig, pinger.stop)
            installed.append(sig)
        except NotImplementedError:
            signal.signal(sig, lambda signum, frame: pinger.stop())
    return installed


async def run(args: argparse.Namespace, config: ConfigManager, registry: ProtocolRegistry) -> Summary:
    """Build the probe for the target and run it until it stops"""
    target = build_target(args, config.probe)
    factory = registry.require(target.protocol)

    resolver = None
    dns_server = _pick(args.dns_server, config.probe.dns_server)
    if target.ip:
        resolver = PinnedResolver(target.ip)
    elif dns_server:
        try:
            resolver = AsyncResolver(nameservers=[dns_server])
        except RuntimeError as e:
            raise ConstructionError(f"Custom DNS server unavailable: {e}") from e

    try:
        option = Option(
            timeout=target.timeout,
            resolver=resolver,
            proxy=URL(target.proxy) if target.proxy else None,
            user_agent=_pick(args.user_agent, config.probe.user_agent),
        )
        ping = factory(target.url, option)
        formatter = ResultFormatter(color=not args.no_color and config.output.color)
        pinger = Pinger(target.url, ping, formatter, interval=target.interval, counter=target.counter)

        loop = asyncio.get_running_loop()
        installed = _install_signal_handlers(pinger)
        try:
            return await pinger.run()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
    finally:
        if resolver is not None:
            await resolver.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    try:
        config = ConfigManager(args.config)
    except PingError as e:
        Logger(no_color=args.no_color).getLogger().error(f"{e}")
        return 1

    logger = Logger(
        log_dir=args.log_dir or config.output.log_dir,
        verbose=args.verbose,
        no_color=args.no_color or not config.output.color,
    ).getLogger()

    try:
        asyncio.run(run(args, config, default_registry()))
    except PingError as e:
        logger.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    return 0


if __name__ == '__main__':
    sys.exit(main())
