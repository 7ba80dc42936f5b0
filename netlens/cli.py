import asyncio
import sys
from typing import Optional

import click
from rich.console import Console

from . import __version__
from .config import HealthConfig, MtuConfig, SpeedTestConfig, TraceConfig
from .exceptions import TelemetryError
from .health import HealthScorer
from .logging_config import setup_logging
from .models import Outcome, SpeedTestReport, ThroughputResult
from .mtu import MtuDiscoverer
from .output import ConsoleOutput
from .probe import DNSProbe, ICMPProbe, LatencyStatsAggregator, ProbeRunner, TCPProbe
from .speedtest import ThroughputMeter
from .tracer import TracerouteEngine
from .wifi import ChannelCongestionAnalyzer


console = Console()


def _run(coro):
    """Run a command coroutine, mapping Ctrl+C to exit status 130"""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/]")
        sys.exit(130)


@click.group()
@click.option('-v', '--verbose', count=True,
              help='Log more (-v info, -vv debug)')
@click.version_option(version=__version__)
def main(verbose: int):
    """
    NetLens - network diagnostics from the command line.

    Examples:

        netlens ping 1.1.1.1 -c 10

        netlens trace 8.8.8.8

        netlens health
    """
    level = {0: 'WARNING', 1: 'INFO'}.get(verbose, 'DEBUG')
    setup_logging(level, show_path=verbose > 1)


@main.command()
@click.argument('target')
@click.option('-c', '--count', default=4, type=click.IntRange(min=1),
              help='Number of attempts (default: 4)')
@click.option('-w', '--timeout', default=3000, type=click.IntRange(min=1),
              help='Per-attempt timeout in ms (default: 3000)')
@click.option('-i', '--interval', default=200, type=click.IntRange(min=0),
              help='Pause between attempts in ms (default: 200)')
@click.option('-p', '--protocol', default='icmp',
              type=click.Choice(['icmp', 'tcp', 'dns'], case_sensitive=False),
              help='Probe protocol (default: icmp)')
@click.option('--port', default=443, type=int,
              help='Port for TCP probes (default: 443)')
def ping(target: str, count: int, timeout: int, interval: int, protocol: str, port: int):
    """Measure latency, jitter and loss to TARGET."""
    output = ConsoleOutput(console)
    protocol = protocol.lower()
    if protocol == 'tcp':
        probe = TCPProbe(port=port)
    elif protocol == 'dns':
        probe = DNSProbe()
    else:
        probe = ICMPProbe()

    async def run():
        runner = ProbeRunner(probe)
        try:
            aggregator = LatencyStatsAggregator(runner)
            return await aggregator.measure(target, timeout, count, interval)
        finally:
            await runner.close()

    stats = _run(run())
    output.print_latency(stats)
    if not stats.available:
        sys.exit(1)


@main.command()
@click.option('--download/--no-download', default=True, help='Run the download test')
@click.option('--upload/--no-upload', default=True, help='Run the upload test')
@click.option('--upload-url', default=None, help='Upload endpoint')
@click.option('-q', '--quiet', is_flag=True, help='Do not print progress')
def speed(download: bool, upload: bool, upload_url: Optional[str], quiet: bool):
    """Measure ping, download and upload throughput."""
    output = ConsoleOutput(console)
    config = SpeedTestConfig(upload_url=upload_url) if upload_url else SpeedTestConfig()
    meter = ThroughputMeter(config)

    def on_progress(label):
        if quiet:
            return None
        return lambda p: output.print_progress(label, p)

    async def run():
        skipped = ThroughputResult(server=None, bytes_transferred=0, elapsed_seconds=0.0,
                                   rate_mbps=0.0, outcome=Outcome.FAILED, error="skipped")
        ping_ms = await meter.measure_ping()
        down = await meter.download().wait(on_progress("down")) if download else skipped
        up = await meter.upload().wait(on_progress("up  ")) if upload else skipped
        return SpeedTestReport(ping_ms=ping_ms, download=down, upload=up)

    output.print_header("Speed test")
    report = _run(run())
    output.print_speed(report)
    if not report.success:
        sys.exit(1)


@main.command()
@click.argument('host', default='www.google.com')
@click.option('--low', default=1200, type=int, help='Smallest size probed (default: 1200)')
@click.option('--high', default=1500, type=int, help='Largest size probed (default: 1500)')
@click.option('-w', '--timeout', default=2000, type=click.IntRange(min=1),
              help='Per-probe timeout in ms (default: 2000)')
def mtu(host: str, low: int, high: int, timeout: int):
    """Discover the path MTU to HOST."""
    output = ConsoleOutput(console)
    try:
        config = MtuConfig(low=low, high=high, timeout_ms=timeout)
    except ValueError as e:
        raise click.BadParameter(str(e))

    result = _run(MtuDiscoverer(config=config).discover_detailed(host))
    output.print_mtu(host, result.mtu, result.measured)


@main.command()
@click.option('--gateway', default=None, help='Gateway address (default: detect)')
@click.option('--external', default='8.8.8.8', help='External host (default: 8.8.8.8)')
@click.option('--dns', 'dns_target', default='8.8.8.8', help='DNS server (default: 8.8.8.8)')
def health(gateway: Optional[str], external: str, dns_target: str):
    """Score overall network health."""
    output = ConsoleOutput(console)
    config = HealthConfig(gateway=gateway, external_host=external, dns_target=dns_target)

    output.print_header("Network health")
    with console.status("Measuring..."):
        report = _run(HealthScorer(config=config).evaluate())
    output.print_health(report)


@main.command()
@click.option('-n', '--attempts', default=3, type=click.IntRange(min=1),
              help='Attempts per server (default: 3)')
@click.option('-w', '--timeout', default=2000, type=click.IntRange(min=1),
              help='Per-attempt timeout in ms (default: 2000)')
def dns(attempts: int, timeout: int):
    """Rank public DNS resolvers by latency."""
    output = ConsoleOutput(console)
    with console.status("Testing DNS servers..."):
        rankings = _run(HealthScorer().rank_dns_servers(attempts, timeout))
    output.print_dns_ranking(rankings)


@main.command()
@click.argument('target')
@click.option('-m', '--max-hops', default=20, type=click.IntRange(1, 255),
              help='Maximum hops (default: 20)')
@click.option('-w', '--timeout', default=2000, type=click.IntRange(min=1),
              help='Per-hop timeout in ms (default: 2000)')
def trace(target: str, max_hops: int, timeout: int):
    """
    Trace the route to TARGET with geo information.

    Hops are printed as soon as the route tracer reports them.
    """
    output = ConsoleOutput(console)
    config = TraceConfig(max_hops=max_hops, timeout_ms=timeout)

    async def run():
        hops = []
        async with TracerouteEngine(config=config) as engine:
            async with engine.trace(target) as session:
                async for hop in session:
                    output.print_hop(hop)
                    hops.append(hop)
            return hops, session.error

    output.print_header("Traceroute", f"Target: {target}  |  Max hops: {max_hops}")
    try:
        hops, error = _run(run())
    except ValueError as e:
        output.print_error(str(e))
        sys.exit(2)

    if error:
        output.print_error(error)
        sys.exit(1)
    output.print_separator()
    output.print_trace_summary(hops)


@main.command()
def wifi():
    """Scan nearby WiFi networks and analyze channel congestion."""
    output = ConsoleOutput(console)
    analyzer = ChannelCongestionAnalyzer()

    try:
        networks, analysis = _run(analyzer.scan_and_analyze())
    except TelemetryError as e:
        output.print_error(str(e))
        sys.exit(1)
    output.print_wifi(networks, analysis)


if __name__ == '__main__':
    main()
