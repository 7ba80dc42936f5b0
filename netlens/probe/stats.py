"""
Latency, jitter and loss statistics over repeated probes
"""

import asyncio
from typing import Awaitable, Callable, Optional

from ..models import LatencyStats, ProbeSample
from .runner import ProbeRunner


def loss_percentage(attempts: int, successes: int) -> float:
    """(attempts - successes) * (100 / attempts), clamped to [0, 100]"""
    if attempts <= 0:
        return 100.0
    successes = max(0, min(successes, attempts))
    return max(0.0, min(100.0, (attempts - successes) * (100.0 / attempts)))


def summarize(target: str, samples: list[ProbeSample]) -> LatencyStats:
    """
    Build LatencyStats from probe samples.

    Only successful samples contribute to avg/min/max/jitter. With no
    success those fields are None ("unavailable"), never 0 or NaN.
    Jitter is the mean absolute difference between consecutive
    successful RTTs (0 with a single success).
    """
    rtts = [s.rtt_ms for s in samples if s.success and s.rtt_ms is not None]
    total = len(samples)

    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    jitter_ms: Optional[float] = None

    if rtts:
        avg_ms = sum(rtts) / len(rtts)
        min_ms = min(rtts)
        max_ms = max(rtts)
        if len(rtts) > 1:
            diffs = [abs(b - a) for a, b in zip(rtts, rtts[1:])]
            jitter_ms = sum(diffs) / len(diffs)
        else:
            jitter_ms = 0.0

    return LatencyStats(
        target=target,
        avg_ms=avg_ms,
        min_ms=min_ms,
        max_ms=max_ms,
        jitter_ms=jitter_ms,
        success_count=len(rtts),
        total_count=total,
        loss_pct=loss_percentage(total, len(rtts)),
    )


class LatencyStatsAggregator:
    """
    Runs repeated independent probes and aggregates them.

    Attempts are sequential with a fixed, caller-supplied delay between
    them; there is no backoff.
    """

    def __init__(self, runner: ProbeRunner,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.runner = runner
        self._sleep = sleep

    async def probe_once(self, target: str, timeout_ms: int) -> ProbeSample:
        return await self.runner.run(target, timeout_ms)

    async def collect(self, target: str, timeout_ms: int = 3000, attempts: int = 3,
                      inter_attempt_delay_ms: int = 0) -> list[ProbeSample]:
        """Run ``attempts`` probes and return the raw samples"""
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        if inter_attempt_delay_ms < 0:
            raise ValueError("inter_attempt_delay_ms must not be negative")

        samples: list[ProbeSample] = []
        for i in range(attempts):
            if i and inter_attempt_delay_ms:
                await self._sleep(inter_attempt_delay_ms / 1000)
            samples.append(await self.runner.run(target, timeout_ms))
        return samples

    async def measure(self, target: str, timeout_ms: int = 3000, attempts: int = 3,
                      inter_attempt_delay_ms: int = 0) -> LatencyStats:
        """
        Probe target ``attempts`` times and summarize.

        Args:
            target: Host name or IP address
            timeout_ms: Per-attempt timeout
            attempts: Number of independent attempts (>= 1)
            inter_attempt_delay_ms: Fixed pause between attempts

        Returns:
            LatencyStats; ``avg_ms`` is None when nothing answered
        """
        samples = await self.collect(target, timeout_ms, attempts, inter_attempt_delay_ms)
        return summarize(target, samples)
