"""
Streaming traceroute with geo enrichment
"""

import asyncio
import logging
import weakref
from typing import AsyncIterator, Optional

from .cache import Cache
from .config import TraceConfig
from .enrichment import GeoLookup, IPClassifier, is_private
from .models import GeoInfo, RawHop, TraceHop
from .telemetry import PlatformTelemetry, create_telemetry


logger = logging.getLogger(__name__)


class _TraceRun:
    """Process and outcome of one trace, shared by a session and its hop generator"""

    def __init__(self):
        self.proc: Optional[asyncio.subprocess.Process] = None
        self.error: Optional[str] = None
        self.finished = False


class TraceSession:
    """
    One running trace: an async iterator of TraceHop.

    Hops arrive as the route tracer prints them. The session runs once
    and cannot be restarted. Leaving the ``async with`` block, calling
    ``aclose()`` or simply dropping the session before the end terminates
    the tracer process. If the tracer could not be launched the session
    yields nothing and ``error`` says why.
    """

    def __init__(self, engine: 'TracerouteEngine', target: str, max_hops: int, timeout_ms: int):
        self.target = target
        self._state = _TraceRun()
        # the generator only sees the run, so dropping the session finalizes it
        self._hops = engine._run(self._state, target, max_hops, timeout_ms)

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    def __aiter__(self) -> 'TraceSession':
        return self

    async def __anext__(self) -> TraceHop:
        return await self._hops.__anext__()

    async def aclose(self):
        await self._hops.aclose()
        self._state.finished = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False


class TracerouteEngine:
    """
    Traceroute orchestrator.

    Spawns the platform route tracer, parses its output line by line and
    yields enriched hops in hop order. Public addresses are looked up
    once per engine: results (including "nothing found") are kept in the
    engine's own bounded cache, so a repeated address is never queried
    twice while it stays cached. One engine runs one trace at a time.
    """

    def __init__(
        self,
        telemetry: Optional[PlatformTelemetry] = None,
        geo_lookup: Optional[GeoLookup] = None,
        cache: Optional[Cache] = None,
        config: Optional[TraceConfig] = None
    ):
        self.config = config or TraceConfig()
        self.telemetry = telemetry or create_telemetry()
        self._owns_lookup = geo_lookup is None
        self.geo_lookup = geo_lookup or GeoLookup()
        if cache is None:
            cache = Cache(max_entries=self.config.geo_cache_size, ttl=self.config.geo_cache_ttl)
        self.cache = cache
        self._current: Optional[_TraceRun] = None
        self._session: Optional[weakref.ref] = None
        self._orphans: list[_TraceRun] = []

    def trace(self, target: str, max_hops: Optional[int] = None,
              timeout_ms: Optional[int] = None) -> TraceSession:
        """
        Start tracing the route to target.

        Args:
            target: Host name or IP address
            max_hops: Maximum hops (default from config)
            timeout_ms: Per-hop timeout (default from config)

        Returns:
            TraceSession yielding TraceHop values
        """
        target = (target or '').strip()
        if not target or target.startswith('-') or any(c.isspace() for c in target):
            raise ValueError(f"Invalid trace target '{target}'")
        max_hops = max_hops or self.config.max_hops
        if not 1 <= max_hops <= 255:
            raise ValueError("max_hops must be between 1 and 255")

        current = self._current
        if current is not None and not current.finished:
            if self._session() is not None:
                raise RuntimeError("This engine is already running a trace")
            # The previous session was dropped mid-trace; reap its tracer first
            self._orphans.append(current)

        session = TraceSession(self, target, max_hops, timeout_ms or self.config.timeout_ms)
        self._current = session._state
        self._session = weakref.ref(session)
        return session

    async def collect(self, target: str, max_hops: Optional[int] = None,
                      timeout_ms: Optional[int] = None) -> list[TraceHop]:
        """Run a whole trace and return its hops"""
        async with self.trace(target, max_hops, timeout_ms) as session:
            return [hop async for hop in session]

    async def _run(self, run: _TraceRun, target: str,
                   max_hops: int, timeout_ms: int) -> AsyncIterator[TraceHop]:
        try:
            await self._reap_orphans()
            args = self.telemetry.traceroute_command(target, max_hops, timeout_ms)
            try:
                run.proc = await asyncio.create_subprocess_exec(
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except (FileNotFoundError, PermissionError) as e:
                run.error = f"Cannot run '{args[0]}': {e}"
                logger.warning(run.error)
                return

            last_hop = 0
            while True:
                try:
                    raw = await run.proc.stdout.readline()
                except ValueError:
                    # Longer than the stream limit; the reader has already dropped it
                    logger.debug("Ignoring overlong tracer line")
                    continue
                if not raw:
                    break

                line = self.telemetry.decode(raw).rstrip()
                if not line.strip():
                    continue

                parsed = self.telemetry.parse_trace_line(line)
                if parsed is None:
                    logger.debug("Ignoring tracer line: %r", line)
                    continue
                if parsed.hop <= last_hop:
                    logger.debug("Ignoring out-of-order hop %d after %d", parsed.hop, last_hop)
                    continue
                last_hop = parsed.hop

                yield await self._build_hop(parsed)

            await run.proc.wait()
        finally:
            if run.proc is not None:
                await self._reap(run.proc)
            run.finished = True

    async def _reap_orphans(self):
        while self._orphans:
            run = self._orphans.pop()
            if run.proc is not None:
                await self._reap(run.proc)

    async def _reap(self, proc: asyncio.subprocess.Process):
        """Make sure the tracer is gone"""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.config.kill_grace)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()

    async def _build_hop(self, raw: RawHop) -> TraceHop:
        address = raw.address
        geo = None
        if address and IPClassifier.should_enrich(address):
            geo = await self._lookup_geo(address)

        return TraceHop(
            hop=raw.hop,
            address=address,
            latency_ms=raw.latency_ms,
            rtts=raw.rtts,
            is_timeout=address is None and raw.has_timeout,
            is_private=is_private(address),
            geo=geo,
        )

    async def _lookup_geo(self, address: str) -> Optional[GeoInfo]:
        if address in self.cache:
            return self.cache.get(address)
        geo = await self.geo_lookup.lookup(address)
        self.cache.set(address, geo)
        return geo

    async def close(self):
        """Stop any tracer still running and close the geo lookup client if this engine created it"""
        await self._reap_orphans()
        if self._current is not None and self._current.proc is not None:
            await self._reap(self._current.proc)
        if self._owns_lookup:
            await self.geo_lookup.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
