"""
ICMP echo probe through the platform ping
"""

from typing import Optional

from ..models import ErrorKind, PingStatus, ProbeSample
from ..telemetry import PlatformTelemetry, create_telemetry
from .base import BaseProbe


_ERROR_KINDS = {
    PingStatus.TIMEOUT: ErrorKind.TIMEOUT,
    PingStatus.UNREACHABLE: ErrorKind.UNAVAILABLE,
    PingStatus.FRAGMENTATION_NEEDED: ErrorKind.UNAVAILABLE,
    PingStatus.ERROR: ErrorKind.UNAVAILABLE,
}


class ICMPProbe(BaseProbe):
    """
    ICMP echo probe.

    Uses the host's ping executable via the telemetry provider, so no
    raw-socket privileges are needed.
    """

    kind = "icmp"

    def __init__(self, telemetry: Optional[PlatformTelemetry] = None):
        self.telemetry = telemetry or create_telemetry()

    async def probe(self, target: str, timeout_ms: int) -> ProbeSample:
        reply = await self.telemetry.ping(target, timeout_ms)
        if reply.ok and reply.rtt_ms is not None:
            return ProbeSample(target=target, success=True, rtt_ms=reply.rtt_ms)
        return ProbeSample(
            target=target,
            success=False,
            error=_ERROR_KINDS.get(reply.status, ErrorKind.UNAVAILABLE),
            detail=reply.detail,
        )
