"""
IP address classifier
"""

import ipaddress
from enum import Enum
from typing import Optional


class IPType(Enum):
    """IP address classification types"""
    PRIVATE = "private"
    CGNAT = "cgnat"
    LOOPBACK = "loopback"
    LINKLOCAL = "linklocal"
    MULTICAST = "multicast"
    RESERVED = "reserved"
    PUBLIC = "public"
    UNKNOWN = "unknown"


# Ranges a hop can sit in without being globally routable
PRIVATE_NETWORKS = (
    (ipaddress.ip_network('10.0.0.0/8'), IPType.PRIVATE),
    (ipaddress.ip_network('172.16.0.0/12'), IPType.PRIVATE),
    (ipaddress.ip_network('192.168.0.0/16'), IPType.PRIVATE),
    (ipaddress.ip_network('100.64.0.0/10'), IPType.CGNAT),
    (ipaddress.ip_network('127.0.0.0/8'), IPType.LOOPBACK),
    (ipaddress.ip_network('169.254.0.0/16'), IPType.LINKLOCAL),
    (ipaddress.ip_network('fc00::/7'), IPType.PRIVATE),
    (ipaddress.ip_network('fe80::/10'), IPType.LINKLOCAL),
    (ipaddress.ip_network('::1/128'), IPType.LOOPBACK),
)


def _parse(ip: Optional[str]):
    if not ip:
        return None
    try:
        return ipaddress.ip_address(ip.strip().strip('[]()'))
    except ValueError:
        return None


def is_private(ip: Optional[str]) -> bool:
    """True when ip falls inside one of the PRIVATE_NETWORKS ranges"""
    addr = _parse(ip)
    if addr is None:
        return False
    return any(
        addr.version == net.version and addr in net
        for net, _ in PRIVATE_NETWORKS
    )


class IPClassifier:
    """
    Classify IP addresses into categories.

    Membership is decided by exact CIDR ranges, never by string prefix:
    172.16.0.0/12 covers 172.16.x.x through 172.31.x.x and nothing else.
    """

    @classmethod
    def classify(cls, ip: Optional[str]) -> IPType:
        """
        Classify an IP address.

        Args:
            ip: IPv4 or IPv6 address string

        Returns:
            IPType enum value
        """
        addr = _parse(ip)
        if addr is None:
            return IPType.UNKNOWN

        for net, ip_type in PRIVATE_NETWORKS:
            if addr.version == net.version and addr in net:
                return ip_type

        if addr.is_multicast:
            return IPType.MULTICAST

        if addr.is_global:
            return IPType.PUBLIC

        return IPType.RESERVED

    @classmethod
    def is_public(cls, ip: Optional[str]) -> bool:
        """Check if IP is publicly routable"""
        return cls.classify(ip) == IPType.PUBLIC

    @classmethod
    def should_enrich(cls, ip: Optional[str]) -> bool:
        """Check if IP should get a geo lookup"""
        return cls.is_public(ip)
