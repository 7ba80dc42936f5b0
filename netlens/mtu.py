"""
Path MTU discovery by binary search
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import MtuConfig, SearchAction
from .models import PingStatus
from .telemetry import PlatformTelemetry, create_telemetry


logger = logging.getLogger(__name__)


@dataclass
class MtuProbe:
    size: int
    status: PingStatus


@dataclass
class MtuResult:
    """Outcome of one discovery run"""
    mtu: int
    measured: bool = False  # False when no probe succeeded and mtu is the fallback
    probes: list[MtuProbe] = field(default_factory=list)


class MtuDiscoverer:
    """
    Finds the largest packet that crosses the path without fragmenting.

    Each candidate size is probed with a don't-fragment echo whose
    payload is ``size - header_overhead`` bytes. A success raises the
    lower bound; fragmentation-needed and any other failure are handled
    by ``config.on_fragmentation`` and ``config.on_failure`` respectively
    (both shrink the upper bound by default).
    """

    def __init__(self, telemetry: Optional[PlatformTelemetry] = None,
                 config: Optional[MtuConfig] = None):
        self.telemetry = telemetry or create_telemetry()
        self.config = config or MtuConfig()

    async def discover(self, host: str = "www.google.com") -> int:
        """Largest non-fragmenting size in the configured range, or the fallback"""
        return (await self.discover_detailed(host)).mtu

    async def discover_detailed(self, host: str = "www.google.com") -> MtuResult:
        config = self.config
        low, high = config.low, config.high
        best: Optional[int] = None
        probes: list[MtuProbe] = []

        while low <= high:
            mid = (low + high) // 2
            reply = await self.telemetry.ping(
                host,
                config.timeout_ms,
                payload_size=mid - config.header_overhead,
                dont_fragment=True,
            )
            probes.append(MtuProbe(size=mid, status=reply.status))
            logger.debug("MTU probe %d to %s: %s", mid, host, reply.status.value)

            if reply.status == PingStatus.SUCCESS:
                best = mid
                low = mid + 1
                continue

            if reply.status == PingStatus.FRAGMENTATION_NEEDED:
                action = config.on_fragmentation
            else:
                action = config.on_failure

            if action == SearchAction.STOP:
                break
            high = mid - 1

        if best is None:
            logger.info("No MTU probe to %s succeeded, assuming %d", host, config.fallback)
            return MtuResult(mtu=config.fallback, measured=False, probes=probes)
        return MtuResult(mtu=best, measured=True, probes=probes)
