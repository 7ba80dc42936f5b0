"""
Single-attempt probe runner
"""

import logging
import math

from ..models import ErrorKind, ProbeSample
from .base import BaseProbe


logger = logging.getLogger(__name__)


class ProbeRunner:
    """
    Executes one reachability attempt and never raises for it.

    Whatever goes wrong inside the probe (DNS failure, unreachable
    host, a platform tool crashing) comes back as a failed sample.
    Task cancellation is not an error and propagates.
    """

    def __init__(self, probe: BaseProbe):
        self.probe = probe

    async def run(self, target: str, timeout_ms: int) -> ProbeSample:
        """
        Probe target once.

        Args:
            target: Host name or IP address
            timeout_ms: Per-attempt timeout in milliseconds

        Returns:
            ProbeSample; ``success`` implies a finite, non-negative RTT
        """
        try:
            sample = await self.probe.probe(target, timeout_ms)
        except Exception as e:
            logger.warning("%s probe to %s failed unexpectedly: %s", self.probe.kind, target, e)
            return ProbeSample(target=target, success=False, error=ErrorKind.FATAL, detail=str(e))

        if sample.success:
            rtt = sample.rtt_ms
            if rtt is None or not math.isfinite(rtt) or rtt < 0:
                logger.debug("Discarding %s sample with invalid RTT %r", self.probe.kind, rtt)
                return ProbeSample(target=target, success=False, error=ErrorKind.PARSE_FAILURE,
                                   detail=f"invalid RTT {rtt!r}")
        else:
            logger.debug("%s probe to %s: %s (%s)", self.probe.kind, target,
                         sample.error.value if sample.error else "failed", sample.detail)
        return sample

    async def close(self):
        await self.probe.close()
