"""
NetLens - Network Diagnostics Engine

Latency and loss statistics, throughput metering, MTU discovery,
health scoring, streaming traceroute with geo enrichment and
WiFi channel congestion analysis.
"""

__version__ = "1.0.0"
__author__ = "NetLens"
