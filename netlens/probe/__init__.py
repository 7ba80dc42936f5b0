"""
Probe engines for NetLens
"""

from .base import BaseProbe
from .icmp import ICMPProbe
from .tcp import TCPProbe
from .dns_query import DNSProbe
from .runner import ProbeRunner
from .stats import LatencyStatsAggregator, loss_percentage, summarize

__all__ = [
    'BaseProbe', 'ICMPProbe', 'TCPProbe', 'DNSProbe', 'ProbeRunner',
    'LatencyStatsAggregator', 'loss_percentage', 'summarize',
]
