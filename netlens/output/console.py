"""
Rich console output for NetLens
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models import (
    ChannelAnalysis, CongestionLevel, DnsRanking, HealthReport, LatencyStats,
    SpeedTestReport, ThroughputProgress, ThroughputResult, TraceHop, WifiNetwork,
)


GRADE_STYLES = {
    'A': 'bold green',
    'B': 'green',
    'C': 'yellow',
    'D': 'dark_orange',
    'F': 'bold red',
}

CONGESTION_STYLES = {
    CongestionLevel.LOW: 'green',
    CongestionLevel.MEDIUM: 'yellow',
    CongestionLevel.HIGH: 'red',
}

SIGNAL_STYLES = {
    'excellent': 'green',
    'good': 'green',
    'fair': 'yellow',
    'weak': 'red',
}


def _ms(value: Optional[float]) -> str:
    return f"{value:.1f} ms" if value is not None else "-"


def _ok(flag: bool) -> Text:
    return Text("OK", style="green") if flag else Text("FAIL", style="red")


class ConsoleOutput:
    """
    Rich console output for diagnostic results.

    Traceroute hops are printed one line at a time as they arrive; the
    other reports are rendered as panels once complete.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._table_header_printed = False

    def print_header(self, title: str, detail: Optional[str] = None):
        content = Text()
        content.append("NetLens", style="bold cyan")
        content.append(f"  {title}", style="bold")
        if detail:
            content.append(f"\n{detail}", style="dim")
        self.console.print(Panel(content, border_style="cyan", padding=(0, 1)))

    # Traceroute

    def print_table_header(self):
        if self._table_header_printed:
            return

        header = Text()
        header.append(f"{'#':>3}  ", style="bold magenta")
        header.append(f"{'RTT (ms)':^18}  ", style="bold magenta")
        header.append(f"{'IP':<16}  ", style="bold magenta")
        header.append(f"{'Location':<24}  ", style="bold magenta")
        header.append(f"{'ISP':<30}", style="bold magenta")

        self.print_separator()
        self.console.print(header)
        self.print_separator()
        self._table_header_printed = True

    def print_hop(self, hop: TraceHop):
        """Print a single hop as soon as it is known"""
        self.print_table_header()

        line = Text()
        line.append(f"{hop.hop:>3}  ", style="dim")
        line.append(f"{self._format_rtt(hop.rtts):^18}  ")
        if hop.is_timeout:
            line.append(f"{'*':<16}  ", style="yellow")
        else:
            line.append(f"{(hop.address or '-'):<16}  ")
        line.append(f"{hop.location:<24}  ", style="dim" if hop.is_private else "")
        line.append(f"{(hop.isp or '-'):<30}")

        self.console.print(line)

    def print_separator(self):
        self.console.print("-" * 100)

    def print_trace_summary(self, hops: list[TraceHop]):
        if not hops:
            self.print_warning("No hops received")
            return
        last = hops[-1]
        timeouts = sum(1 for h in hops if h.is_timeout)
        content = Text()
        content.append("Hops: ", style="bold")
        content.append(str(len(hops)))
        content.append("  Last: ", style="bold")
        content.append(f"{last.address or '*'} ({_ms(last.latency_ms)})")
        if timeouts:
            content.append(f"\n{timeouts} hop(s) did not answer", style="yellow")
        self.console.print(Panel(content, title="Summary", border_style="blue", padding=(0, 1)))

    # Latency / throughput

    def print_latency(self, stats: LatencyStats):
        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Target", stats.target)
        table.add_row("Average", _ms(stats.avg_ms))
        table.add_row("Min / Max", f"{_ms(stats.min_ms)} / {_ms(stats.max_ms)}")
        table.add_row("Jitter", _ms(stats.jitter_ms))
        table.add_row("Received", f"{stats.success_count}/{stats.total_count}")
        table.add_row("Loss", f"{stats.loss_pct:.0f}%")
        self.console.print(Panel(table, title="Ping", border_style="blue"))

    def print_progress(self, label: str, progress: ThroughputProgress):
        self.console.print(
            f"[dim]{label}[/] {progress.rate_mbps:8.2f} Mbps  "
            f"[dim]{progress.bytes_so_far / 1_000_000:.1f} MB in {progress.elapsed_seconds:.1f}s[/]"
        )

    def _throughput_row(self, table: Table, label: str, result: ThroughputResult):
        if result.success:
            table.add_row(label, f"{result.rate_mbps:.2f} Mbps", result.server or "-")
        elif result.cancelled:
            table.add_row(label, Text("cancelled", style="yellow"), result.server or "-")
        else:
            table.add_row(label, Text("failed", style="red"), result.error or "-")

    def print_speed(self, report: SpeedTestReport):
        table = Table(box=box.ROUNDED, border_style="dim", header_style="bold magenta")
        table.add_column("Test")
        table.add_column("Result", justify="right")
        table.add_column("Server / Detail", overflow="ellipsis")
        table.add_row("Ping", _ms(report.ping_ms), "")
        self._throughput_row(table, "Download", report.download)
        self._throughput_row(table, "Upload", report.upload)
        self.console.print(Panel(table, title="Speed Test", border_style="blue", padding=(0, 0)))

    def print_mtu(self, host: str, mtu: int, measured: bool):
        content = Text()
        content.append("Path MTU to ", style="dim")
        content.append(host, style="bold")
        content.append(f": {mtu} bytes", style="bold green" if measured else "bold yellow")
        if not measured:
            content.append("\nNo probe succeeded, showing the default", style="yellow")
        self.console.print(Panel(content, title="MTU", border_style="blue", padding=(0, 1)))

    # Health

    def print_health(self, report: HealthReport):
        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
        table.add_column(style="bold")
        table.add_column()
        table.add_column(style="dim")
        table.add_row("DNS", f"score {report.dns_score}", _ms(report.dns_latency_ms))
        table.add_row("Gateway", _ok(report.gateway_ok),
                      f"{report.gateway or 'unknown'}  {_ms(report.gateway_latency_ms)}")
        table.add_row("Internet", _ok(report.internet_ok), _ms(report.internet_latency_ms))
        table.add_row("Packet loss", f"{report.packet_loss_pct:.0f}%", "")

        grade_style = GRADE_STYLES.get(report.grade, 'bold')
        title = Text()
        title.append("Health ", style="bold")
        title.append(f"{report.overall_score}/100 ", style=grade_style)
        title.append(f"({report.grade})", style=grade_style)

        self.console.print(Panel(table, title=title, border_style="blue"))
        if report.error:
            self.print_warning(report.error)

    def print_dns_ranking(self, rankings: list[DnsRanking]):
        table = Table(box=box.ROUNDED, border_style="dim", header_style="bold magenta")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Server")
        table.add_column("Primary")
        table.add_column("Secondary")
        table.add_column("Latency", justify="right")
        for i, r in enumerate(rankings, 1):
            latency = _ms(r.latency_ms) if r.available else Text("unreachable", style="red")
            table.add_row(str(i), r.server.name, r.server.primary, r.server.secondary or "-", latency)
        self.console.print(table)

    # WiFi

    def print_wifi(self, networks: list[WifiNetwork], analysis: ChannelAnalysis):
        table = Table(box=box.ROUNDED, border_style="dim", header_style="bold magenta")
        table.add_column("SSID", overflow="ellipsis", max_width=28)
        table.add_column("BSSID")
        table.add_column("Signal", justify="right")
        table.add_column("Ch", justify="right")
        table.add_column("Band")
        table.add_column("Security", overflow="ellipsis")
        for net in networks:
            quality = net.signal_quality
            table.add_row(
                net.ssid or Text("(hidden)", style="dim"),
                net.bssid or "-",
                Text(f"{net.signal}%", style=SIGNAL_STYLES.get(quality, '')),
                str(net.channel),
                net.band or "-",
                net.authentication or "-",
            )
        if networks:
            self.console.print(table)

        content = Text()
        content.append(f"Networks: {analysis.total_networks}", style="bold")
        content.append(f"  (2.4GHz {analysis.networks_24ghz}, 5GHz {analysis.networks_5ghz})\n", style="dim")
        content.append("Best 2.4GHz channel: ", style="bold")
        usage = ", ".join(f"{ch}:{n}" for ch, n in analysis.usage_24.items())
        content.append(f"{analysis.best_24_channel}", style="green")
        content.append(f"  [{usage}]\n", style="dim")
        content.append("Best 5GHz channel: ", style="bold")
        content.append(str(analysis.best_5_channel) if analysis.best_5_channel else "-")
        if analysis.current_channel is not None:
            level = analysis.congestion_level
            content.append("\nCurrent channel: ", style="bold")
            content.append(f"{analysis.current_channel} ")
            content.append(f"({level.value} congestion)", style=CONGESTION_STYLES.get(level, ''))
            content.append(f"\n{analysis.recommendation}")
        self.console.print(Panel(content, title="Channels", border_style="blue", padding=(0, 1)))

    def print_error(self, message: str):
        self.console.print(f"[bold red]Error:[/] {message}")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]Warning:[/] {message}")

    def _format_rtt(self, rtts: tuple[Optional[float], ...]) -> str:
        """RTT samples, '*' for lost probes"""
        if not rtts:
            return "*"
        parts = []
        for r in rtts:
            parts.append(f"{r:.0f}" if r is not None else "*")
        return " / ".join(parts)
