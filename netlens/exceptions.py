"""
Exception types for NetLens

Ordinary network failures never surface as exceptions; probes and
composite builders turn them into "unavailable" values. These types
cover the cases that do propagate.
"""


class NetLensError(Exception):
    """Base class for all NetLens errors"""


class TelemetryError(NetLensError):
    """A platform facility (ping, route tracer, WiFi scanner) is missing or unsupported"""


class MeasurementCancelled(NetLensError):
    """A measurement was stopped by its caller's cancellation signal"""
