"""
Telemetry provider for Windows
"""

import asyncio
import logging
from typing import Optional

from ..exceptions import TelemetryError
from ..models import PingReply, RawHop, WifiConnection, WifiNetwork
from .base import PlatformTelemetry
from .parsers import (
    parse_hop_line,
    parse_netsh_interfaces,
    parse_netsh_networks,
    parse_windows_gateway,
    parse_windows_ping,
)


logger = logging.getLogger(__name__)


class WindowsTelemetry(PlatformTelemetry):
    """
    Windows provider: ping, tracert, route print, netsh wlan.

    Console tools write in the OEM code page, which differs per locale
    (cp437, cp936, ...). Parsers accept English and Chinese labels.
    """

    name = "windows"
    encoding = "oem"

    def ping_command(self, target: str, timeout_ms: int,
                     payload_size: Optional[int] = None,
                     dont_fragment: bool = False) -> list[str]:
        args = ['ping', '-n', '1', '-w', str(timeout_ms)]
        if payload_size is not None:
            args += ['-l', str(payload_size)]
        if dont_fragment:
            args.append('-f')
        return args + [target]

    def parse_ping(self, output: str) -> PingReply:
        return parse_windows_ping(output)

    def traceroute_command(self, target: str, max_hops: int, timeout_ms: int) -> list[str]:
        return ['tracert', '-d', '-h', str(max_hops), '-w', str(timeout_ms), target]

    def parse_trace_line(self, line: str) -> Optional[RawHop]:
        return parse_hop_line(line)

    async def default_gateway(self) -> Optional[str]:
        try:
            output = await self.run_command(['route', 'print', '-4', '0.0.0.0'])
        except (TelemetryError, asyncio.TimeoutError) as e:
            logger.debug("Cannot read routing table: %s", e)
            return None
        return parse_windows_gateway(output)

    async def _netsh(self, *args: str) -> str:
        try:
            return await self.run_command(['netsh', 'wlan', 'show', *args])
        except asyncio.TimeoutError as e:
            raise TelemetryError("netsh did not answer in time") from e

    async def scan_wifi(self) -> list[WifiNetwork]:
        networks = parse_netsh_networks(await self._netsh('networks', 'mode=bssid'))
        return sorted(networks, key=lambda n: n.signal, reverse=True)

    async def current_wifi(self) -> Optional[WifiConnection]:
        return parse_netsh_interfaces(await self._netsh('interfaces'))
