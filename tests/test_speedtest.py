"""Test throughput metering."""
import asyncio

import httpx
import pytest

from netlens.config import SpeedTestConfig, SpeedTestServer
from netlens.exceptions import MeasurementCancelled
from netlens.models import ErrorKind, Outcome, ProbeSample
from netlens.probe import BaseProbe, LatencyStatsAggregator, ProbeRunner
from netlens.speedtest import ThroughputMeter, mbps


class FakeClock:
    def __init__(self, step=0.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


SERVERS = (
    SpeedTestServer("first", "http://first.test/file"),
    SpeedTestServer("second", "http://second.test/file"),
    SpeedTestServer("third", "http://third.test/file"),
)


def _body(clock, chunks=4, size=1_000_000, seconds=0.25):
    async def gen():
        for _ in range(chunks):
            clock.now += seconds
            yield b"x" * size
    return gen()


def _meter(handler, clock, **config):
    config.setdefault('servers', SERVERS)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ThroughputMeter(SpeedTestConfig(**config), client=client, clock=clock), client


def test_mbps():
    assert mbps(4_000_000, 1.0) == pytest.approx(32.0)
    assert mbps(1_000_000, 0) == 0.0


@pytest.mark.asyncio
async def test_download_rate_and_progress():
    """Test final rate = bytes * 8 / 1e6 / seconds with ordered progress."""
    clock = FakeClock()

    def handler(request):
        return httpx.Response(200, content=_body(clock))

    meter, client = _meter(handler, clock)
    async with client:
        session = meter.download()
        progress = [p async for p in session]
        result = session.result

    assert result.outcome == Outcome.SUCCESS
    assert result.server == "first"
    assert result.bytes_transferred == 4_000_000
    assert result.elapsed_seconds == pytest.approx(1.0)
    assert result.rate_mbps == pytest.approx(32.0)

    assert progress
    elapsed = [p.elapsed_seconds for p in progress]
    assert elapsed == sorted(elapsed)
    for p in progress:
        assert p.rate_mbps == pytest.approx(mbps(p.bytes_so_far, p.elapsed_seconds))


@pytest.mark.asyncio
async def test_download_falls_back_to_next_server():
    """Test that a failing server is skipped and later ones are not contacted."""
    clock = FakeClock()
    contacted = []

    def handler(request):
        contacted.append(request.url.host)
        if request.url.host == "first.test":
            return httpx.Response(500)
        return httpx.Response(200, content=_body(clock, chunks=2))

    meter, client = _meter(handler, clock)
    async with client:
        result = await meter.download().wait()

    assert result.success
    assert result.server == "second"
    assert result.rate_mbps == pytest.approx(mbps(2_000_000, 0.5))
    assert contacted == ["first.test", "second.test"]


@pytest.mark.asyncio
async def test_download_all_servers_fail():
    def handler(request):
        if request.url.host == "second.test":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(503)

    meter, client = _meter(handler, FakeClock())
    async with client:
        result = await meter.download().wait()

    assert result.outcome == Outcome.FAILED
    assert result.rate_mbps == 0.0
    assert "first: HTTP 503" in result.error
    assert "third: HTTP 503" in result.error


@pytest.mark.asyncio
async def test_truncated_download_is_a_failure():
    clock = FakeClock()

    def handler(request):
        if request.url.host == "first.test":
            return httpx.Response(200, headers={'Content-Length': '5000000'},
                                  content=_body(clock, chunks=4))
        return httpx.Response(404)

    meter, client = _meter(handler, clock)
    async with client:
        result = await meter.download().wait()

    assert result.outcome == Outcome.FAILED
    assert "truncated" in result.error


@pytest.mark.asyncio
async def test_cancel_before_start():
    contacted = []

    def handler(request):
        contacted.append(request)
        return httpx.Response(200, content=b"x")

    cancel = asyncio.Event()
    cancel.set()
    meter, client = _meter(handler, FakeClock())
    async with client:
        result = await meter.download(cancel).wait()

    assert result.outcome == Outcome.CANCELLED
    assert result.cancelled
    assert contacted == []


@pytest.mark.asyncio
async def test_cancel_mid_transfer():
    """Test that setting the signal aborts the read loop with CANCELLED."""
    cancel = asyncio.Event()

    async def stalled_body():
        yield b"x" * 100_000
        cancel.set()
        await asyncio.sleep(30)
        yield b"x"

    def handler(request):
        return httpx.Response(200, content=stalled_body())

    meter, client = _meter(handler, FakeClock())
    async with client:
        result = await asyncio.wait_for(meter.download(cancel).wait(), timeout=10)

    assert result.outcome == Outcome.CANCELLED
    assert result.error != "internal error"
    assert result.rate_mbps == 0.0
    with pytest.raises(MeasurementCancelled):
        result.raise_for_outcome()


@pytest.mark.asyncio
async def test_upload():
    received = []

    def handler(request):
        received.append(len(request.content))
        return httpx.Response(200, json={})

    clock = FakeClock(step=0.25)
    meter, client = _meter(
        handler, clock,
        upload_url="http://upload.test/post", upload_size=400_000, chunk_size=100_000,
    )
    progress = []
    async with client:
        result = await meter.upload().wait(progress.append)

    assert received == [400_000]
    assert result.success
    assert result.bytes_transferred == 400_000
    assert result.rate_mbps == pytest.approx(mbps(400_000, result.elapsed_seconds))
    assert [p.bytes_so_far for p in progress] == [100_000, 200_000, 300_000, 400_000]


@pytest.mark.asyncio
async def test_upload_http_error():
    meter, client = _meter(lambda request: httpx.Response(413), FakeClock(step=0.25),
                           upload_url="http://upload.test/post", upload_size=1000)
    async with client:
        result = await meter.upload().wait()

    assert result.outcome == Outcome.FAILED
    assert result.error == "HTTP 413"


class HostProbe(BaseProbe):
    kind = "fake"

    def __init__(self, rtts):
        self.rtts = rtts

    async def probe(self, target, timeout_ms):
        rtt = self.rtts.get(target)
        if rtt is None:
            return ProbeSample(target=target, success=False, error=ErrorKind.TIMEOUT)
        return ProbeSample(target=target, success=True, rtt_ms=rtt)


@pytest.mark.asyncio
async def test_measure_ping_falls_back_to_second_host():
    aggregator = LatencyStatsAggregator(ProbeRunner(HostProbe({"backup.test": 25.0})))
    meter = ThroughputMeter(
        SpeedTestConfig(ping_hosts=("primary.test", "backup.test"), ping_delay_ms=0),
        aggregator=aggregator,
    )

    assert await meter.measure_ping() == pytest.approx(25.0)


@pytest.mark.asyncio
async def test_measure_ping_unavailable():
    aggregator = LatencyStatsAggregator(ProbeRunner(HostProbe({})))
    meter = ThroughputMeter(SpeedTestConfig(ping_delay_ms=0), aggregator=aggregator)

    assert await meter.measure_ping() is None


def test_progress_interval_floor():
    with pytest.raises(ValueError):
        SpeedTestConfig(progress_interval=0.1)


@pytest.mark.asyncio
async def test_measure_full_runs_ping_download_upload():
    """Test that a full run reports latency, download and upload together."""
    clock = FakeClock()

    def handler(request):
        if request.method == "POST":
            clock.now += 0.5
            return httpx.Response(200, json={})
        return httpx.Response(200, content=_body(clock, chunks=2))

    aggregator = LatencyStatsAggregator(ProbeRunner(HostProbe({"primary.test": 18.0})))
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    meter = ThroughputMeter(
        SpeedTestConfig(servers=SERVERS, upload_url="http://upload.test/post",
                        upload_size=1000, chunk_size=1000,
                        ping_hosts=("primary.test",), ping_delay_ms=0),
        client=client, clock=clock, aggregator=aggregator,
    )
    async with client:
        report = await meter.measure_full()

    assert report.ping_ms == pytest.approx(18.0)
    assert report.download.success
    assert report.download.bytes_transferred == 2_000_000
    assert report.upload.success
    assert report.upload.bytes_transferred == 1000
    assert report.success


@pytest.mark.asyncio
async def test_progress_stays_ordered_across_server_fallback():
    """Test that elapsed time keeps growing when a server drops mid-stream."""
    clock = FakeClock()

    async def broken_body():
        for _ in range(4):
            clock.now += 0.25
            yield b"x" * 1000
        raise httpx.ReadError("connection reset")

    def handler(request):
        if request.url.host == "first.test":
            return httpx.Response(200, content=broken_body())
        return httpx.Response(200, content=_body(clock, chunks=2, size=1000))

    meter, client = _meter(handler, clock, chunk_size=1000, progress_interval=0.25)
    async with client:
        session = meter.download()
        progress = [p async for p in session]
        result = session.result

    assert [p.server for p in progress] == ["first"] * 4 + ["second"] * 2
    elapsed = [p.elapsed_seconds for p in progress]
    assert elapsed == sorted(elapsed)
    assert elapsed[-2:] == pytest.approx([1.25, 1.5])
    # the rate only covers the server being measured
    assert progress[-1].rate_mbps == pytest.approx(mbps(2000, 0.5))

    assert result.server == "second"
    assert result.elapsed_seconds == pytest.approx(0.5)
    assert result.rate_mbps == pytest.approx(mbps(2000, 0.5))


@pytest.mark.asyncio
async def test_cancelled_transfer_leaves_no_pending_tasks():
    cancel = asyncio.Event()

    async def stalled_body():
        yield b"x" * 1000
        cancel.set()
        await asyncio.sleep(30)
        yield b"x"

    meter, client = _meter(lambda request: httpx.Response(200, content=stalled_body()),
                           FakeClock())
    async with client:
        result = await asyncio.wait_for(meter.download(cancel).wait(), timeout=10)

    assert result.cancelled
    assert asyncio.all_tasks() == {asyncio.current_task()}
