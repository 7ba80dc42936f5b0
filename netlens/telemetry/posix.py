"""
Telemetry providers for Linux and macOS
"""

import asyncio
import logging
import math
from typing import Optional

from ..exceptions import TelemetryError
from ..models import PingReply, RawHop, WifiConnection, WifiNetwork
from .base import PlatformTelemetry
from .parsers import (
    parse_hop_line,
    parse_linux_gateway,
    parse_mac_gateway,
    parse_nmcli_wifi,
    parse_posix_ping,
)


logger = logging.getLogger(__name__)


def _seconds(timeout_ms: int) -> str:
    return str(max(1, math.ceil(timeout_ms / 1000)))


class LinuxTelemetry(PlatformTelemetry):
    """
    Linux provider: iputils ping, traceroute, iproute2, NetworkManager.
    """

    name = "linux"
    NMCLI_FIELDS = "ACTIVE,SSID,BSSID,SIGNAL,CHAN,SECURITY,RATE"

    def ping_command(self, target: str, timeout_ms: int,
                     payload_size: Optional[int] = None,
                     dont_fragment: bool = False) -> list[str]:
        args = ['ping', '-n', '-c', '1', '-W', _seconds(timeout_ms)]
        if payload_size is not None:
            args += ['-s', str(payload_size)]
        if dont_fragment:
            args += ['-M', 'do']
        return args + [target]

    def parse_ping(self, output: str) -> PingReply:
        return parse_posix_ping(output)

    def traceroute_command(self, target: str, max_hops: int, timeout_ms: int) -> list[str]:
        return ['traceroute', '-n', '-q', '3', '-m', str(max_hops),
                '-w', _seconds(timeout_ms), target]

    def parse_trace_line(self, line: str) -> Optional[RawHop]:
        return parse_hop_line(line)

    async def default_gateway(self) -> Optional[str]:
        try:
            output = await self.run_command(['ip', '-4', 'route', 'show', 'default'])
        except (TelemetryError, asyncio.TimeoutError) as e:
            logger.debug("Cannot read routing table: %s", e)
            return None
        return parse_linux_gateway(output)

    async def _nmcli(self) -> tuple[list[WifiNetwork], Optional[WifiConnection]]:
        try:
            output = await self.run_command(
                ['nmcli', '-t', '-f', self.NMCLI_FIELDS, 'device', 'wifi', 'list']
            )
        except asyncio.TimeoutError as e:
            raise TelemetryError("nmcli did not answer in time") from e
        return parse_nmcli_wifi(output)

    async def scan_wifi(self) -> list[WifiNetwork]:
        networks, _ = await self._nmcli()
        return sorted(networks, key=lambda n: n.signal, reverse=True)

    async def current_wifi(self) -> Optional[WifiConnection]:
        _, current = await self._nmcli()
        return current


class MacTelemetry(LinuxTelemetry):
    """
    macOS provider: BSD ping and traceroute, ``route get``.

    WiFi scanning has no supported command-line tool on current macOS
    releases, so the WiFi calls raise TelemetryError.
    """

    name = "darwin"

    def ping_command(self, target: str, timeout_ms: int,
                     payload_size: Optional[int] = None,
                     dont_fragment: bool = False) -> list[str]:
        # BSD ping takes -W in milliseconds
        args = ['ping', '-n', '-c', '1', '-W', str(timeout_ms)]
        if payload_size is not None:
            args += ['-s', str(payload_size)]
        if dont_fragment:
            args.append('-D')
        return args + [target]

    async def default_gateway(self) -> Optional[str]:
        try:
            output = await self.run_command(['route', '-n', 'get', 'default'])
        except (TelemetryError, asyncio.TimeoutError) as e:
            logger.debug("Cannot read routing table: %s", e)
            return None
        return parse_mac_gateway(output)

    async def scan_wifi(self) -> list[WifiNetwork]:
        raise TelemetryError("WiFi scanning is not supported on macOS")

    async def current_wifi(self) -> Optional[WifiConnection]:
        raise TelemetryError("WiFi status is not supported on macOS")
