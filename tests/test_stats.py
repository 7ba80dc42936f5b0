"""Test probe runner and latency statistics."""
import asyncio

import pytest

from netlens.models import ErrorKind, PingReply, PingStatus, ProbeSample
from netlens.probe import (
    BaseProbe, ICMPProbe, LatencyStatsAggregator, ProbeRunner, loss_percentage, summarize,
)
from netlens.telemetry import LinuxTelemetry


class ScriptedProbe(BaseProbe):
    """Replays a fixed list of RTTs; None is a timeout, an exception is raised"""

    kind = "scripted"

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    async def probe(self, target, timeout_ms):
        value = self.script[len(self.calls)]
        self.calls.append((target, timeout_ms))
        if isinstance(value, BaseException):
            raise value
        if value is None:
            return ProbeSample(target=target, success=False, error=ErrorKind.TIMEOUT)
        return ProbeSample(target=target, success=True, rtt_ms=value)


def _ok(rtt):
    return ProbeSample(target="t", success=True, rtt_ms=rtt)


def _lost():
    return ProbeSample(target="t", success=False, error=ErrorKind.TIMEOUT)


def test_summarize_uses_only_successes():
    """Test that failed attempts do not pull the average down."""
    stats = summarize("t", [_ok(10.0), _lost(), _ok(30.0)])

    assert stats.avg_ms == pytest.approx(20.0)
    assert stats.min_ms == 10.0
    assert stats.max_ms == 30.0
    assert stats.jitter_ms == pytest.approx(20.0)
    assert stats.success_count == 2
    assert stats.total_count == 3
    assert stats.loss_pct == pytest.approx(100 / 3)


def test_summarize_no_success_is_unavailable():
    """Test that zero successes give None, never 0."""
    stats = summarize("t", [_lost(), _lost()])

    assert stats.avg_ms is None
    assert stats.min_ms is None
    assert stats.jitter_ms is None
    assert stats.available is False
    assert stats.loss_pct == 100.0


def test_summarize_single_success_has_zero_jitter():
    stats = summarize("t", [_ok(12.5)])
    assert stats.jitter_ms == 0.0
    assert stats.loss_pct == 0.0


def test_jitter_is_mean_consecutive_difference():
    stats = summarize("t", [_ok(10.0), _ok(14.0), _ok(12.0), _ok(20.0)])
    # |14-10| + |12-14| + |20-12| = 4 + 2 + 8
    assert stats.jitter_ms == pytest.approx(14.0 / 3)


@pytest.mark.parametrize("successes", range(11))
def test_loss_for_ten_attempts_is_multiple_of_ten(successes):
    """Test loss% = (10 - S) * 10."""
    assert loss_percentage(10, successes) == pytest.approx((10 - successes) * 10)


def test_loss_percentage_bounds():
    assert loss_percentage(0, 0) == 100.0
    assert loss_percentage(4, 9) == 0.0
    assert loss_percentage(4, -1) == 100.0


@pytest.mark.asyncio
async def test_aggregator_delays_only_between_attempts():
    """Test that the fixed delay is applied between, not after, attempts."""
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    probe = ScriptedProbe([5.0, None, 7.0])
    aggregator = LatencyStatsAggregator(ProbeRunner(probe), sleep=fake_sleep)
    stats = await aggregator.measure("host", timeout_ms=500, attempts=3, inter_attempt_delay_ms=100)

    assert sleeps == [0.1, 0.1]
    assert probe.calls == [("host", 500)] * 3
    assert stats.avg_ms == pytest.approx(6.0)
    assert stats.success_count == 2


@pytest.mark.asyncio
async def test_aggregator_rejects_zero_attempts():
    aggregator = LatencyStatsAggregator(ProbeRunner(ScriptedProbe([])))
    with pytest.raises(ValueError):
        await aggregator.measure("host", attempts=0)


@pytest.mark.asyncio
async def test_runner_turns_exceptions_into_fatal_samples():
    """Test that a crashing probe never raises through the runner."""
    runner = ProbeRunner(ScriptedProbe([RuntimeError("boom")]))
    sample = await runner.run("host", 1000)

    assert sample.success is False
    assert sample.error == ErrorKind.FATAL
    assert "boom" in sample.detail


@pytest.mark.asyncio
async def test_runner_rejects_invalid_rtt():
    runner = ProbeRunner(ScriptedProbe([-3.0]))
    sample = await runner.run("host", 1000)

    assert sample.success is False
    assert sample.error == ErrorKind.PARSE_FAILURE


@pytest.mark.asyncio
async def test_runner_propagates_cancellation():
    runner = ProbeRunner(ScriptedProbe([asyncio.CancelledError()]))
    with pytest.raises(asyncio.CancelledError):
        await runner.run("host", 1000)


class ReplyTelemetry(LinuxTelemetry):
    def __init__(self, reply):
        self.reply = reply

    async def ping(self, target, timeout_ms, payload_size=None, dont_fragment=False):
        return self.reply


@pytest.mark.asyncio
@pytest.mark.parametrize("status,kind", [
    (PingStatus.TIMEOUT, ErrorKind.TIMEOUT),
    (PingStatus.UNREACHABLE, ErrorKind.UNAVAILABLE),
    (PingStatus.ERROR, ErrorKind.UNAVAILABLE),
])
async def test_icmp_probe_maps_failures(status, kind):
    probe = ICMPProbe(ReplyTelemetry(PingReply(status=status)))
    sample = await probe.probe("host", 1000)

    assert sample.success is False
    assert sample.error == kind


@pytest.mark.asyncio
async def test_icmp_probe_success():
    probe = ICMPProbe(ReplyTelemetry(PingReply(status=PingStatus.SUCCESS, rtt_ms=9.5)))
    sample = await probe.probe("host", 1000)

    assert sample.success is True
    assert sample.rtt_ms == 9.5
