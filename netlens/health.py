"""
Composite network health scoring
"""

import logging
from typing import Optional

from .config import GRADE_THRESHOLDS, HealthConfig
from .models import DnsRanking, HealthReport, ProbeSample
from .probe import ICMPProbe, LatencyStatsAggregator, ProbeRunner, loss_percentage
from .telemetry import PlatformTelemetry, create_telemetry


logger = logging.getLogger(__name__)


def clamp_score(value: float) -> int:
    """Truncate to an integer in [0, 100]"""
    # round() first so 69.99999999999999 from float weights still reads as 70
    return max(0, min(100, int(round(value, 6))))


def grade_for(score: int) -> str:
    """Letter grade: >=90 A, >=80 B, >=70 C, >=60 D, else F"""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def dns_score(latency_ms: Optional[float], config: Optional[HealthConfig] = None) -> int:
    """Score a DNS round trip: unavailable 0, then by latency tier"""
    config = config or HealthConfig()
    if latency_ms is None or latency_ms < 0:
        return 0
    for bound, score in config.dns_tiers:
        if latency_ms < bound:
            return score
    return config.dns_floor


def overall_score(dns: int, gateway_ok: bool, internet_ok: bool, loss_pct: float,
                  config: Optional[HealthConfig] = None) -> int:
    """Weighted composite of the four terms"""
    weights = (config or HealthConfig()).weights
    loss_pct = max(0.0, min(100.0, loss_pct))
    total = (
        dns * weights.dns
        + (100 if gateway_ok else 0) * weights.gateway
        + (100 if internet_ok else 0) * weights.internet
        + (100 - loss_pct) * weights.loss
    )
    return clamp_score(total)


class HealthScorer:
    """
    Evaluates overall network health.

    Four independent measurements feed the score:
    - DNS resolver latency (tiered score)
    - Default gateway reachability
    - Internet reachability (external host)
    - Packet loss over sequential single probes to the external host

    A failing measurement only zeroes its own term. ``evaluate()`` never
    raises; an unexpected error is recorded in ``HealthReport.error``
    alongside whatever the other measurements produced.
    """

    def __init__(
        self,
        aggregator: Optional[LatencyStatsAggregator] = None,
        telemetry: Optional[PlatformTelemetry] = None,
        config: Optional[HealthConfig] = None
    ):
        self.telemetry = telemetry or create_telemetry()
        self.aggregator = aggregator or LatencyStatsAggregator(
            ProbeRunner(ICMPProbe(self.telemetry))
        )
        self.config = config or HealthConfig()

    async def _resolve_gateway(self) -> Optional[str]:
        if self.config.gateway:
            return self.config.gateway
        return await self.telemetry.default_gateway()

    async def _single(self, target: str, timeout_ms: int) -> ProbeSample:
        return await self.aggregator.probe_once(target, timeout_ms)

    async def _measure_dns(self, fields: dict):
        stats = await self.aggregator.measure(
            self.config.dns_target,
            timeout_ms=self.config.dns_timeout_ms,
            attempts=self.config.dns_attempts,
        )
        fields['dns_latency_ms'] = stats.avg_ms
        fields['dns_score'] = dns_score(stats.avg_ms, self.config)

    async def _measure_gateway(self, fields: dict):
        gateway = await self._resolve_gateway()
        fields['gateway'] = gateway
        if not gateway:
            logger.warning("No default gateway found")
            return
        sample = await self._single(gateway, self.config.gateway_timeout_ms)
        fields['gateway_ok'] = sample.success
        fields['gateway_latency_ms'] = sample.rtt_ms if sample.success else None

    async def _measure_internet(self, fields: dict):
        sample = await self._single(self.config.external_host, self.config.internet_timeout_ms)
        fields['internet_ok'] = sample.success
        fields['internet_latency_ms'] = sample.rtt_ms if sample.success else None

    async def _measure_loss(self, fields: dict):
        successes = 0
        for _ in range(self.config.loss_probes):
            sample = await self._single(self.config.external_host, self.config.loss_timeout_ms)
            if sample.success:
                successes += 1
        fields['packet_loss_pct'] = loss_percentage(self.config.loss_probes, successes)

    async def evaluate(self) -> HealthReport:
        """Run all measurements and build the report"""
        fields: dict = {}
        errors: list[str] = []

        steps = (
            ('dns', self._measure_dns),
            ('gateway', self._measure_gateway),
            ('internet', self._measure_internet),
            ('packet loss', self._measure_loss),
        )
        for name, step in steps:
            try:
                await step(fields)
            except Exception as e:
                logger.exception("Health check step '%s' failed", name)
                errors.append(f"{name}: {str(e) or type(e).__name__}")

        if errors:
            fields['error'] = "; ".join(errors)
        return self._build(fields)

    def _build(self, fields: dict) -> HealthReport:
        dns = fields.get('dns_score', 0)
        gateway_ok = fields.get('gateway_ok', False)
        internet_ok = fields.get('internet_ok', False)
        loss = fields.get('packet_loss_pct', 100.0)

        score = overall_score(dns, gateway_ok, internet_ok, loss, self.config)
        return HealthReport(
            dns_latency_ms=fields.get('dns_latency_ms'),
            dns_score=dns,
            gateway=fields.get('gateway'),
            gateway_ok=gateway_ok,
            gateway_latency_ms=fields.get('gateway_latency_ms'),
            internet_ok=internet_ok,
            internet_latency_ms=fields.get('internet_latency_ms'),
            packet_loss_pct=loss,
            overall_score=score,
            grade=grade_for(score),
            error=fields.get('error'),
        )

    async def rank_dns_servers(self, attempts: int = 3, timeout_ms: int = 2000) -> list[DnsRanking]:
        """
        Measure each configured public resolver.

        Returns:
            Rankings sorted with reachable servers first, fastest first
        """
        rankings = []
        for server in self.config.dns_servers:
            stats = await self.aggregator.measure(
                server.primary, timeout_ms=timeout_ms, attempts=attempts
            )
            rankings.append(DnsRanking(server=server, latency_ms=stats.avg_ms))

        return sorted(
            rankings,
            key=lambda r: (not r.available, r.latency_ms if r.available else 0.0)
        )
