"""
Throughput metering against HTTP speed test servers
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

import httpx

from .config import SpeedTestConfig, SpeedTestServer
from .models import Outcome, SpeedTestReport, ThroughputProgress, ThroughputResult
from .probe import ICMPProbe, LatencyStatsAggregator, ProbeRunner


logger = logging.getLogger(__name__)

ProgressSink = Callable[[ThroughputProgress], None]
Step = Union[ThroughputProgress, ThroughputResult]


def mbps(nbytes: int, seconds: float) -> float:
    """Cumulative rate: (bytes * 8 / 1e6) / seconds"""
    if seconds <= 0:
        return 0.0
    return (nbytes * 8 / 1_000_000) / seconds


class _TransferState:
    """Bytes and timing of the transfer currently in flight"""

    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self.server: Optional[str] = None
        self.bytes = 0
        self.start: Optional[float] = None
        self.origin: Optional[float] = None

    def begin(self, server: str) -> float:
        self.server = server
        self.bytes = 0
        self.start = self._clock()
        if self.origin is None:
            self.origin = self.start
        return self.start

    def progress(self, now: float) -> ThroughputProgress:
        """Sample at now; elapsed counts from the first server, the rate from the current one"""
        return ThroughputProgress(
            server=self.server,
            bytes_so_far=self.bytes,
            elapsed_seconds=now - self.origin,
            rate_mbps=mbps(self.bytes, now - self.start),
        )

    def elapsed(self) -> float:
        if self.start is None:
            return 0.0
        return max(0.0, self._clock() - self.start)

    def result(self, outcome: Outcome, error: Optional[str] = None,
               nbytes: Optional[int] = None, elapsed: Optional[float] = None) -> ThroughputResult:
        nbytes = self.bytes if nbytes is None else nbytes
        elapsed = self.elapsed() if elapsed is None else elapsed
        return ThroughputResult(
            server=self.server,
            bytes_transferred=nbytes,
            elapsed_seconds=elapsed,
            rate_mbps=mbps(nbytes, elapsed) if outcome == Outcome.SUCCESS else 0.0,
            outcome=outcome,
            error=error,
        )


class TransferSession:
    """
    Lazy sequence of progress samples terminated by a final result.

    Iterate it (``async for progress in session``) and read ``result``
    afterwards, or call ``wait(on_progress)`` to subscribe a handler and
    get the result directly. A session runs once; it cannot be restarted.
    """

    def __init__(self, steps: AsyncIterator[Step]):
        self._steps = steps
        self.result: Optional[ThroughputResult] = None

    def __aiter__(self) -> 'TransferSession':
        return self

    async def __anext__(self) -> ThroughputProgress:
        if self.result is not None:
            raise StopAsyncIteration
        step = await self._steps.__anext__()
        if isinstance(step, ThroughputResult):
            self.result = step
            await self._steps.aclose()
            raise StopAsyncIteration
        return step

    async def wait(self, on_progress: Optional[ProgressSink] = None) -> ThroughputResult:
        """Consume the session, passing each sample to on_progress"""
        async for progress in self:
            if on_progress:
                on_progress(progress)
        if self.result is None:
            raise RuntimeError("Transfer session ended without a result")
        return self.result

    async def aclose(self):
        """Stop the transfer if it is still running"""
        await self._steps.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False


class ThroughputMeter:
    """
    Measures download and upload throughput.

    Downloads try ``config.servers`` in order; the first server that
    delivers its whole payload is the result and later servers are not
    contacted. Uploads post one fixed-size payload to a single URL.

    Progress is a cumulative rate (bytes so far over time since start),
    reported no more often than ``config.progress_interval``. Setting the
    ``cancel`` event aborts the active transfer and yields a CANCELLED
    result, never a FAILED one.

    Example:
        >>> meter = ThroughputMeter()
        >>> result = await meter.download().wait(print)
    """

    def __init__(
        self,
        config: Optional[SpeedTestConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.perf_counter,
        aggregator: Optional[LatencyStatsAggregator] = None
    ):
        self.config = config or SpeedTestConfig()
        self._client = client
        self._clock = clock
        self._aggregator = aggregator

    @asynccontextmanager
    async def _client_scope(self):
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout),
            headers={'User-Agent': self.config.user_agent},
            follow_redirects=True,
        ) as client:
            yield client

    def download(self, cancel: Optional[asyncio.Event] = None) -> TransferSession:
        """Start a download measurement (runs when iterated)"""
        return TransferSession(self._drive(self._download, cancel))

    def upload(self, cancel: Optional[asyncio.Event] = None) -> TransferSession:
        """Start an upload measurement (runs when iterated)"""
        return TransferSession(self._drive(self._upload, cancel))

    async def _drive(
        self,
        transfer: Callable[[ProgressSink, _TransferState], Awaitable[ThroughputResult]],
        cancel: Optional[asyncio.Event]
    ) -> AsyncIterator[Step]:
        """Run transfer as a task, relaying its progress until it finishes or is cancelled"""
        state = _TransferState(self._clock)
        if cancel is not None and cancel.is_set():
            yield state.result(Outcome.CANCELLED, "cancelled before start")
            return

        queue: asyncio.Queue[ThroughputProgress] = asyncio.Queue()
        task = asyncio.ensure_future(transfer(queue.put_nowait, state))
        cancel_waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        getter: Optional[asyncio.Future] = None

        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                waiters = {task, getter}
                if cancel_waiter is not None:
                    waiters.add(cancel_waiter)
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if getter.done():
                    yield getter.result()
                    continue
                getter.cancel()

                if task.done():
                    while not queue.empty():
                        yield queue.get_nowait()
                    try:
                        result = task.result()
                    except Exception as e:
                        logger.exception("Transfer failed unexpectedly")
                        result = state.result(Outcome.FAILED, f"internal error: {e}")
                    yield result
                    return

                # Cancel signal fired while the transfer was running
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                logger.info("Transfer from %s cancelled after %d bytes", state.server, state.bytes)
                yield state.result(Outcome.CANCELLED, "cancelled")
                return
        finally:
            pending = [f for f in (task, getter, cancel_waiter) if f is not None and not f.done()]
            for future in pending:
                future.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _download(self, report: ProgressSink, state: _TransferState) -> ThroughputResult:
        errors: list[str] = []
        async with self._client_scope() as client:
            for server in self.config.servers:
                result = await self._download_from(client, server, report, state)
                if result.success:
                    return result
                logger.warning("Download from %s failed: %s", server.name, result.error)
                errors.append(f"{server.name}: {result.error}")

        return ThroughputResult(
            server=None,
            bytes_transferred=0,
            elapsed_seconds=0.0,
            rate_mbps=0.0,
            outcome=Outcome.FAILED,
            error="; ".join(errors) or "no download servers configured",
        )

    async def _download_from(self, client: httpx.AsyncClient, server: SpeedTestServer,
                             report: ProgressSink, state: _TransferState) -> ThroughputResult:
        start = state.begin(server.name)
        last_report = start
        interval = self.config.progress_interval
        expected: Optional[int] = None

        try:
            async with client.stream(
                'GET', server.url, headers={'Accept-Encoding': 'identity'}
            ) as response:
                if not response.is_success:
                    return state.result(Outcome.FAILED, f"HTTP {response.status_code}")

                content_length = response.headers.get('Content-Length')
                if content_length and content_length.isdigit():
                    expected = int(content_length)

                async for chunk in response.aiter_raw(self.config.chunk_size):
                    state.bytes += len(chunk)
                    now = self._clock()
                    if now - last_report >= interval:
                        if now > start:
                            report(state.progress(now))
                        last_report = now
        except httpx.HTTPError as e:
            return state.result(Outcome.FAILED, str(e) or type(e).__name__)

        elapsed = state.elapsed()
        if expected is not None and state.bytes < expected:
            return state.result(Outcome.FAILED, f"truncated: {state.bytes} of {expected} bytes")
        if state.bytes == 0 or elapsed <= 0:
            return state.result(Outcome.FAILED, "no data received")

        logger.debug("Download from %s: %d bytes in %.2fs", server.name, state.bytes, elapsed)
        return state.result(Outcome.SUCCESS, elapsed=elapsed)

    async def _upload(self, report: ProgressSink, state: _TransferState) -> ThroughputResult:
        size = self.config.upload_size
        chunk_size = self.config.chunk_size
        interval = self.config.progress_interval
        payload = os.urandom(size)
        url = self.config.upload_url

        async with self._client_scope() as client:
            start = state.begin(url)
            last_report = start

            async def body():
                nonlocal last_report
                for offset in range(0, size, chunk_size):
                    block = payload[offset:offset + chunk_size]
                    yield block
                    state.bytes += len(block)
                    now = self._clock()
                    if now - last_report >= interval and now > start:
                        report(state.progress(now))
                        last_report = now

            try:
                response = await client.post(
                    url,
                    content=body(),
                    headers={'Content-Type': 'application/octet-stream',
                             'Content-Length': str(size)},
                )
            except httpx.HTTPError as e:
                return state.result(Outcome.FAILED, str(e) or type(e).__name__)

        elapsed = state.elapsed()
        if not response.is_success:
            return state.result(Outcome.FAILED, f"HTTP {response.status_code}")
        if elapsed <= 0:
            return state.result(Outcome.FAILED, "no elapsed time measured")

        logger.debug("Upload to %s: %d bytes in %.2fs", url, size, elapsed)
        return state.result(Outcome.SUCCESS, nbytes=size, elapsed=elapsed)

    def _latency_aggregator(self) -> LatencyStatsAggregator:
        if self._aggregator is None:
            self._aggregator = LatencyStatsAggregator(ProbeRunner(ICMPProbe()))
        return self._aggregator

    async def measure_ping(self) -> Optional[float]:
        """Average ping to the first configured host that answers, None if none do"""
        aggregator = self._latency_aggregator()
        for host in self.config.ping_hosts:
            stats = await aggregator.measure(
                host,
                timeout_ms=self.config.ping_timeout_ms,
                attempts=self.config.ping_attempts,
                inter_attempt_delay_ms=self.config.ping_delay_ms,
            )
            if stats.available:
                return stats.avg_ms
        return None

    async def measure_full(
        self,
        cancel: Optional[asyncio.Event] = None,
        on_download: Optional[ProgressSink] = None,
        on_upload: Optional[ProgressSink] = None
    ) -> SpeedTestReport:
        """Ping, then download, then upload"""
        ping_ms = await self.measure_ping()
        download = await self.download(cancel).wait(on_download)
        upload = await self.upload(cancel).wait(on_upload)
        return SpeedTestReport(ping_ms=ping_ms, download=download, upload=upload)
