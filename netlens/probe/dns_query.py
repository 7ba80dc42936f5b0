"""
DNS query probe
"""

import time

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..models import ErrorKind, ProbeSample
from .base import BaseProbe


class DNSProbe(BaseProbe):
    """
    Times a DNS query sent directly to the target resolver.

    Any answer counts as a response, including NXDOMAIN: the resolver
    replied, which is what is being measured.
    """

    kind = "dns"

    def __init__(self, query_name: str = "www.google.com", rdtype: str = "A"):
        self.query_name = query_name
        self.rdtype = rdtype

    def _resolver(self, nameserver: str, timeout_ms: int) -> dns.asyncresolver.Resolver:
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
        resolver.timeout = timeout_ms / 1000
        resolver.lifetime = timeout_ms / 1000
        resolver.cache = None
        return resolver

    async def probe(self, target: str, timeout_ms: int) -> ProbeSample:
        try:
            resolver = self._resolver(target, timeout_ms)
        except ValueError as e:
            return ProbeSample(target=target, success=False, error=ErrorKind.UNAVAILABLE,
                               detail=f"not a resolver address: {e}")

        start = time.perf_counter()
        try:
            await resolver.resolve(self.query_name, self.rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            pass
        except dns.exception.Timeout:
            return ProbeSample(target=target, success=False, error=ErrorKind.TIMEOUT,
                               detail="DNS query timed out")
        except dns.exception.DNSException as e:
            return ProbeSample(target=target, success=False, error=ErrorKind.UNAVAILABLE,
                               detail=str(e))

        rtt_ms = (time.perf_counter() - start) * 1000
        return ProbeSample(target=target, success=True, rtt_ms=round(rtt_ms, 2))
