"""
Configuration for NetLens components

Every component takes one of these objects in its constructor. The
module-level constants are the defaults used when none is given.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import DnsServer


USER_AGENT = "NetLens/1.0"


@dataclass(frozen=True)
class SpeedTestServer:
    name: str
    url: str


DOWNLOAD_SERVERS = (
    SpeedTestServer("Cloudflare", "https://speed.cloudflare.com/__down?bytes=25000000"),
    SpeedTestServer("OVH France", "https://proof.ovh.net/files/10Mb.dat"),
    SpeedTestServer("Hetzner Germany", "https://speed.hetzner.de/10MB.bin"),
)
UPLOAD_URL = "https://httpbin.org/post"
UPLOAD_SIZE = 2_000_000  # bytes
CHUNK_SIZE = 81920  # bytes
PROGRESS_INTERVAL = 0.2  # seconds
TRANSFER_TIMEOUT = 30.0  # seconds
PING_HOSTS = ("www.google.com", "www.baidu.com")


@dataclass(frozen=True)
class SpeedTestConfig:
    servers: tuple[SpeedTestServer, ...] = DOWNLOAD_SERVERS
    upload_url: str = UPLOAD_URL
    upload_size: int = UPLOAD_SIZE
    chunk_size: int = CHUNK_SIZE
    progress_interval: float = PROGRESS_INTERVAL
    timeout: float = TRANSFER_TIMEOUT
    user_agent: str = USER_AGENT
    ping_hosts: tuple[str, ...] = PING_HOSTS
    ping_attempts: int = 3
    ping_timeout_ms: int = 3000
    ping_delay_ms: int = 100

    def __post_init__(self):
        # Progress is never reported more often than every 200ms
        if self.progress_interval < 0.2:
            raise ValueError("progress_interval must be at least 0.2 seconds")
        if self.upload_size <= 0 or self.chunk_size <= 0:
            raise ValueError("upload_size and chunk_size must be positive")


@dataclass(frozen=True)
class ScoringWeights:
    dns: float = 0.3
    gateway: float = 0.2
    internet: float = 0.3
    loss: float = 0.2


# (upper bound in ms, score) - first bound the latency is below wins
DNS_SCORE_TIERS = ((30.0, 100), (50.0, 80), (100.0, 60), (200.0, 40))
DNS_SCORE_FLOOR = 20

GRADE_THRESHOLDS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))

DNS_SERVERS = (
    DnsServer("Cloudflare", "1.1.1.1", "1.0.0.1"),
    DnsServer("Google", "8.8.8.8", "8.8.4.4"),
    DnsServer("AliDNS", "223.5.5.5", "223.6.6.6"),
    DnsServer("DNSPod", "119.29.29.29", "119.28.28.28"),
    DnsServer("114 DNS", "114.114.114.114", "114.114.115.115"),
    DnsServer("OpenDNS", "208.67.222.222", "208.67.220.220"),
    DnsServer("Quad9", "9.9.9.9", "149.112.112.112"),
)


@dataclass(frozen=True)
class HealthConfig:
    dns_target: str = "8.8.8.8"
    external_host: str = "8.8.8.8"
    gateway: Optional[str] = None  # None = ask the platform
    dns_attempts: int = 3
    dns_timeout_ms: int = 2000
    gateway_timeout_ms: int = 2000
    internet_timeout_ms: int = 3000
    loss_probes: int = 10
    loss_timeout_ms: int = 1000
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    dns_tiers: tuple[tuple[float, int], ...] = DNS_SCORE_TIERS
    dns_floor: int = DNS_SCORE_FLOOR
    dns_servers: tuple[DnsServer, ...] = DNS_SERVERS


class SearchAction(Enum):
    """What the MTU search does with a probe that did not succeed"""
    SHRINK = "shrink"  # high = mid - 1
    STOP = "stop"      # end the search, keep the best size so far


@dataclass(frozen=True)
class MtuConfig:
    low: int = 1200
    high: int = 1500
    header_overhead: int = 28  # IPv4 + ICMP headers
    fallback: int = 1500
    timeout_ms: int = 2000
    on_fragmentation: SearchAction = SearchAction.SHRINK
    on_failure: SearchAction = SearchAction.SHRINK

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError("MTU search range is empty")
        if self.low <= self.header_overhead:
            raise ValueError("MTU lower bound must exceed the header overhead")


GEO_API_URL = "http://ip-api.com/json/{ip}"
GEO_FIELDS = "status,country,countryCode,region,city,isp,org,as,proxy,hosting"


@dataclass(frozen=True)
class GeoConfig:
    api_url: str = GEO_API_URL
    fields: str = GEO_FIELDS
    timeout: float = 5.0


@dataclass(frozen=True)
class TraceConfig:
    max_hops: int = 20
    timeout_ms: int = 2000
    geo_cache_size: int = 512
    geo_cache_ttl: Optional[float] = None  # seconds, None = engine lifetime
    kill_grace: float = 2.0  # seconds to wait for a terminated tracer


@dataclass(frozen=True)
class WifiConfig:
    overlap_radius: int = 2
    reference_channels: tuple[int, ...] = (1, 6, 11)
    low_max: int = 2
    medium_max: int = 5
    # Occupancy above which a non-optimal channel is worth leaving
    switch_threshold: int = 3
