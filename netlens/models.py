"""
Data models for NetLens
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Why a measurement produced no data"""
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    PARSE_FAILURE = "parse_failure"
    CANCELLED = "cancelled"
    FATAL = "fatal"


class Outcome(Enum):
    """Outcome of a metered transfer"""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PingStatus(Enum):
    """Classified reply of one platform echo request"""
    SUCCESS = "success"
    FRAGMENTATION_NEEDED = "fragmentation_needed"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    ERROR = "error"


class CongestionLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class PingReply:
    """Parsed result of one platform ping invocation"""
    status: PingStatus
    rtt_ms: Optional[float] = None
    responder: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == PingStatus.SUCCESS


@dataclass(frozen=True)
class ProbeSample:
    """Result of a single reachability attempt"""
    target: str
    success: bool
    rtt_ms: Optional[float] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class LatencyStats:
    """Aggregate over repeated probe attempts.

    ``avg_ms`` is ``None`` when no attempt succeeded; callers treat that
    as "unavailable" rather than as a zero latency.
    """
    target: str
    avg_ms: Optional[float]
    min_ms: Optional[float]
    max_ms: Optional[float]
    jitter_ms: Optional[float]
    success_count: int
    total_count: int
    loss_pct: float

    @property
    def available(self) -> bool:
        return self.avg_ms is not None


@dataclass(frozen=True)
class ThroughputProgress:
    """
    Cumulative rate observed part-way through a transfer.

    elapsed_seconds counts from the start of the session, so it keeps
    growing across a server fallback; rate_mbps covers the current server.
    """
    server: str
    bytes_so_far: int
    elapsed_seconds: float
    rate_mbps: float


@dataclass(frozen=True)
class ThroughputResult:
    """Result of one metered transfer"""
    server: Optional[str]
    bytes_transferred: int
    elapsed_seconds: float
    rate_mbps: float
    outcome: Outcome
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.outcome == Outcome.CANCELLED

    def raise_for_outcome(self) -> 'ThroughputResult':
        """Raise MeasurementCancelled if the transfer was cancelled"""
        if self.cancelled:
            from .exceptions import MeasurementCancelled
            raise MeasurementCancelled(
                f"Transfer from {self.server or 'server'} was cancelled"
            )
        return self


@dataclass(frozen=True)
class SpeedTestReport:
    """Ping, download and upload results of a full speed test"""
    ping_ms: Optional[float]
    download: ThroughputResult
    upload: ThroughputResult

    @property
    def success(self) -> bool:
        return self.download.success or self.upload.success


@dataclass(frozen=True)
class HealthReport:
    """Composite network health diagnosis"""
    dns_latency_ms: Optional[float] = None
    dns_score: int = 0
    gateway: Optional[str] = None
    gateway_ok: bool = False
    gateway_latency_ms: Optional[float] = None
    internet_ok: bool = False
    internet_latency_ms: Optional[float] = None
    packet_loss_pct: float = 100.0
    overall_score: int = 0
    grade: str = "F"
    error: Optional[str] = None


@dataclass(frozen=True)
class DnsServer:
    name: str
    primary: str
    secondary: Optional[str] = None


@dataclass(frozen=True)
class DnsRanking:
    server: DnsServer
    latency_ms: Optional[float]

    @property
    def available(self) -> bool:
        return self.latency_ms is not None


@dataclass(frozen=True)
class GeoInfo:
    """Geographic and ISP information for a public address"""
    country: Optional[str] = None
    country_code: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    asn: Optional[str] = None
    proxy: bool = False
    hosting: bool = False


@dataclass(frozen=True)
class RawHop:
    """One hop line as understood from the route tracer's output"""
    hop: int
    rtts: tuple[Optional[float], ...] = ()
    address: Optional[str] = None
    has_timeout: bool = False

    @property
    def latency_ms(self) -> Optional[float]:
        valid = [r for r in self.rtts if r is not None]
        return sum(valid) / len(valid) if valid else None


@dataclass(frozen=True)
class TraceHop:
    """Enriched routing hop"""
    hop: int
    address: Optional[str] = None
    latency_ms: Optional[float] = None
    rtts: tuple[Optional[float], ...] = ()
    is_timeout: bool = False
    is_private: bool = False
    geo: Optional[GeoInfo] = None

    @property
    def country(self) -> str:
        return (self.geo.country or "") if self.geo else ""

    @property
    def city(self) -> str:
        return (self.geo.city or "") if self.geo else ""

    @property
    def isp(self) -> str:
        return (self.geo.isp or "") if self.geo else ""

    @property
    def location(self) -> str:
        if self.is_private:
            return "LAN"
        if not self.country:
            return "-"
        if not self.city:
            return self.country
        return f"{self.country} {self.city}"


def band_for_channel(channel: int) -> Optional[str]:
    if 1 <= channel <= 13:
        return "2.4GHz"
    if channel > 30:
        return "5GHz"
    return None


@dataclass(frozen=True)
class WifiNetwork:
    """One access point observed by a WiFi scan"""
    ssid: str
    bssid: str = ""
    signal: int = 0
    channel: int = 0
    authentication: str = ""
    network_type: str = ""

    @property
    def band(self) -> Optional[str]:
        return band_for_channel(self.channel)

    @property
    def signal_quality(self) -> str:
        if self.signal >= 80:
            return "excellent"
        if self.signal >= 60:
            return "good"
        if self.signal >= 40:
            return "fair"
        return "weak"


@dataclass(frozen=True)
class WifiConnection:
    """Parameters of the current WiFi association"""
    ssid: str = ""
    bssid: str = ""
    channel: int = 0
    signal: int = 0
    authentication: str = ""
    cipher: str = ""
    receive_rate: str = ""
    transmit_rate: str = ""
    radio_type: str = ""

    @property
    def band(self) -> Optional[str]:
        return band_for_channel(self.channel)


@dataclass(frozen=True)
class ChannelAnalysis:
    """WiFi channel congestion analysis"""
    total_networks: int = 0
    networks_24ghz: int = 0
    networks_5ghz: int = 0
    best_24_channel: int = 1
    best_5_channel: Optional[int] = None
    current_channel: Optional[int] = None
    current_occupancy: Optional[int] = None
    congestion_level: Optional[CongestionLevel] = None
    recommendation: str = ""
    occupancy_24: dict[int, int] = field(default_factory=dict)
    occupancy_5: dict[int, int] = field(default_factory=dict)
    usage_24: dict[int, int] = field(default_factory=dict)
