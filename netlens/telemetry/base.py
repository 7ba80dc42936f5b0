"""
Abstract platform telemetry provider

The rest of NetLens only talks to the OS network stack through this
interface. Each platform subclass knows which commands to spawn and
how to read their locale-dependent output.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..exceptions import TelemetryError
from ..models import PingReply, PingStatus, RawHop, WifiConnection, WifiNetwork


logger = logging.getLogger(__name__)


class PlatformTelemetry(ABC):
    """Platform network facilities: ping, route tracer, gateway, WiFi"""

    name = "generic"
    encoding = "utf-8"
    # Extra seconds a ping process gets beyond its own reply timeout
    PROCESS_GRACE = 2.0
    COMMAND_TIMEOUT = 15.0

    @abstractmethod
    def ping_command(self, target: str, timeout_ms: int,
                     payload_size: Optional[int] = None,
                     dont_fragment: bool = False) -> list[str]:
        """Argument vector for a single echo request"""
        pass

    @abstractmethod
    def parse_ping(self, output: str) -> PingReply:
        """Classify the output of ping_command"""
        pass

    @abstractmethod
    def traceroute_command(self, target: str, max_hops: int, timeout_ms: int) -> list[str]:
        """Argument vector for the route tracer"""
        pass

    @abstractmethod
    def parse_trace_line(self, line: str) -> Optional[RawHop]:
        """Parse one line of route tracer output, None if it is not a hop"""
        pass

    def decode(self, raw: bytes) -> str:
        return raw.decode(self.encoding, errors='replace')

    async def run_command(self, args: list[str], timeout: Optional[float] = None) -> str:
        """
        Run a short-lived command and return its combined output.

        Raises:
            TelemetryError: the executable could not be launched
            asyncio.TimeoutError: it did not finish in time (process is killed)
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise TelemetryError(f"Cannot run '{args[0]}': {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(
                proc.communicate(),
                timeout=timeout or self.COMMAND_TIMEOUT
            )
        except asyncio.TimeoutError:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        return self.decode(stdout or b'')

    async def ping(self, target: str, timeout_ms: int,
                   payload_size: Optional[int] = None,
                   dont_fragment: bool = False) -> PingReply:
        """
        Send one echo request through the platform ping.

        Never raises for network problems: launch failures and hung
        processes come back as ERROR / TIMEOUT replies.
        """
        args = self.ping_command(target, timeout_ms, payload_size, dont_fragment)
        try:
            output = await self.run_command(
                args, timeout=timeout_ms / 1000 + self.PROCESS_GRACE
            )
        except TelemetryError as e:
            logger.debug("ping unavailable: %s", e)
            return PingReply(status=PingStatus.ERROR, detail=str(e))
        except asyncio.TimeoutError:
            return PingReply(status=PingStatus.TIMEOUT, detail="ping did not finish")

        return self.parse_ping(output)

    async def default_gateway(self) -> Optional[str]:
        """IPv4 address of the default gateway, None if unknown"""
        return None

    async def scan_wifi(self) -> list[WifiNetwork]:
        """Nearby WiFi networks"""
        raise TelemetryError(f"WiFi scanning is not supported on {self.name}")

    async def current_wifi(self) -> Optional[WifiConnection]:
        """Current WiFi association, None when not connected"""
        raise TelemetryError(f"WiFi status is not supported on {self.name}")
