"""
TCP connect probe
"""

import asyncio
import socket
import time

from ..models import ErrorKind, ProbeSample
from .base import BaseProbe


class TCPProbe(BaseProbe):
    """
    Times a TCP three-way handshake.

    Useful where ICMP is filtered: the connection is closed as soon as
    it is established.
    """

    kind = "tcp"

    def __init__(self, port: int = 443):
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port {port}")
        self.port = port

    async def probe(self, target: str, timeout_ms: int) -> ProbeSample:
        start = time.perf_counter()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(target, self.port),
                timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            return ProbeSample(target=target, success=False, error=ErrorKind.TIMEOUT,
                               detail=f"no answer on port {self.port}")
        except socket.gaierror as e:
            return ProbeSample(target=target, success=False, error=ErrorKind.UNAVAILABLE,
                               detail=f"name resolution failed: {e}")
        except OSError as e:
            return ProbeSample(target=target, success=False, error=ErrorKind.UNAVAILABLE,
                               detail=str(e))

        rtt_ms = (time.perf_counter() - start) * 1000
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # peer reset while closing; the handshake already succeeded

        return ProbeSample(target=target, success=True, rtt_ms=round(rtt_ms, 2))
