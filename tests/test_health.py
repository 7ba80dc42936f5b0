"""Test network health scoring."""
import pytest

from netlens.config import HealthConfig
from netlens.health import HealthScorer, clamp_score, dns_score, grade_for, overall_score
from netlens.models import DnsServer, ErrorKind, ProbeSample
from netlens.probe import BaseProbe, LatencyStatsAggregator, ProbeRunner
from netlens.telemetry import LinuxTelemetry


class SequenceProbe(BaseProbe):
    """Per-target RTT sequences; None is a lost probe, the last value repeats"""

    kind = "fake"

    def __init__(self, sequences):
        self.sequences = {k: list(v) for k, v in sequences.items()}
        self.calls = []

    async def probe(self, target, timeout_ms):
        self.calls.append(target)
        sequence = self.sequences.get(target, [None])
        rtt = sequence.pop(0) if len(sequence) > 1 else sequence[0]
        if rtt is None:
            return ProbeSample(target=target, success=False, error=ErrorKind.TIMEOUT)
        return ProbeSample(target=target, success=True, rtt_ms=rtt)


class GatewayTelemetry(LinuxTelemetry):
    def __init__(self, gateway=None, error=None):
        self.gateway = gateway
        self.error = error

    async def default_gateway(self):
        if self.error:
            raise self.error
        return self.gateway


def _scorer(sequences, telemetry=None, **config):
    probe = SequenceProbe(sequences)
    aggregator = LatencyStatsAggregator(ProbeRunner(probe))
    config.setdefault('dns_target', "1.1.1.1")
    config.setdefault('external_host', "9.9.9.9")
    scorer = HealthScorer(
        aggregator=aggregator,
        telemetry=telemetry or GatewayTelemetry("192.168.1.1"),
        config=HealthConfig(**config),
    )
    return scorer, probe


@pytest.mark.parametrize("latency,score", [
    (None, 0),
    (5.0, 100),
    (29.9, 100),
    (30.0, 80),
    (49.0, 80),
    (99.0, 60),
    (150.0, 40),
    (200.0, 20),
    (900.0, 20),
])
def test_dns_score_tiers(latency, score):
    assert dns_score(latency) == score


@pytest.mark.parametrize("score,grade", [
    (100, "A"), (90, "A"), (89, "B"), (80, "B"), (79, "C"),
    (70, "C"), (69, "D"), (60, "D"), (59, "F"), (0, "F"),
])
def test_grade_thresholds(score, grade):
    assert grade_for(score) == grade


def test_overall_score_bounds():
    assert overall_score(100, True, True, 0.0) == 100
    assert overall_score(0, False, False, 100.0) == 0
    assert overall_score(0, False, False, 250.0) == 0
    assert clamp_score(69.99999999999999) == 70
    assert clamp_score(70.9) == 70


@pytest.mark.asyncio
async def test_end_to_end_scenario():
    """DNS 40ms, gateway down, internet up, 2/10 lost => 70, grade C."""
    scorer, probe = _scorer({
        "1.1.1.1": [40.0],
        "192.168.1.1": [None],
        # one reachability probe, then ten loss probes with two lost
        "9.9.9.9": [15.0, 15.0, None, 15.0, 15.0, 15.0, None, 15.0, 15.0, 15.0, 15.0],
    })
    report = await scorer.evaluate()

    assert report.dns_latency_ms == pytest.approx(40.0)
    assert report.dns_score == 80
    assert report.gateway == "192.168.1.1"
    assert report.gateway_ok is False
    assert report.internet_ok is True
    assert report.packet_loss_pct == pytest.approx(20.0)
    assert report.overall_score == 70
    assert report.grade == "C"
    assert report.error is None
    assert probe.calls.count("9.9.9.9") == 11


@pytest.mark.asyncio
async def test_healthy_network():
    scorer, _ = _scorer({"1.1.1.1": [12.0], "192.168.1.1": [1.0], "9.9.9.9": [20.0]})
    report = await scorer.evaluate()

    assert report.overall_score == 100
    assert report.grade == "A"
    assert report.gateway_latency_ms == 1.0


@pytest.mark.asyncio
async def test_everything_down():
    scorer, _ = _scorer({})
    report = await scorer.evaluate()

    assert report.dns_latency_ms is None
    assert report.dns_score == 0
    assert report.packet_loss_pct == 100.0
    assert report.overall_score == 0
    assert report.grade == "F"


@pytest.mark.asyncio
async def test_missing_gateway_zeroes_only_its_term():
    scorer, probe = _scorer({"1.1.1.1": [12.0], "9.9.9.9": [20.0]},
                            telemetry=GatewayTelemetry(None))
    report = await scorer.evaluate()

    assert report.gateway is None
    assert report.gateway_ok is False
    assert report.overall_score == 80
    assert "192.168.1.1" not in probe.calls


@pytest.mark.asyncio
async def test_failing_step_is_recorded_not_raised():
    """Test that an unexpected error degrades the report instead of raising."""
    scorer, _ = _scorer({"1.1.1.1": [12.0], "9.9.9.9": [20.0]},
                        telemetry=GatewayTelemetry(error=RuntimeError("routing table broke")))
    report = await scorer.evaluate()

    assert report.gateway_ok is False
    assert report.internet_ok is True
    assert report.dns_score == 100
    assert report.overall_score == 80
    assert "gateway: routing table broke" in report.error


@pytest.mark.asyncio
async def test_explicit_gateway_skips_detection():
    scorer, probe = _scorer({"1.1.1.1": [12.0], "10.0.0.254": [2.0], "9.9.9.9": [20.0]},
                            telemetry=GatewayTelemetry(error=RuntimeError("not called")),
                            gateway="10.0.0.254")
    report = await scorer.evaluate()

    assert report.gateway == "10.0.0.254"
    assert report.gateway_ok is True
    assert report.error is None


@pytest.mark.asyncio
async def test_rank_dns_servers():
    servers = (
        DnsServer("Slow", "203.0.113.1"),
        DnsServer("Down", "203.0.113.2"),
        DnsServer("Fast", "203.0.113.3"),
    )
    scorer, _ = _scorer({"203.0.113.1": [80.0], "203.0.113.3": [10.0]}, dns_servers=servers)
    rankings = await scorer.rank_dns_servers(attempts=2, timeout_ms=100)

    assert [r.server.name for r in rankings] == ["Fast", "Slow", "Down"]
    assert rankings[0].latency_ms == pytest.approx(10.0)
    assert rankings[2].available is False
