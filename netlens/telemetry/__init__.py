"""
Platform telemetry providers for NetLens
"""

import sys

from .base import PlatformTelemetry
from .posix import LinuxTelemetry, MacTelemetry
from .windows import WindowsTelemetry


def create_telemetry(platform: str = sys.platform) -> PlatformTelemetry:
    """Factory function to create the provider for the current OS"""
    if platform == 'win32':
        return WindowsTelemetry()
    if platform == 'darwin':
        return MacTelemetry()
    return LinuxTelemetry()


__all__ = [
    'PlatformTelemetry', 'LinuxTelemetry', 'MacTelemetry',
    'WindowsTelemetry', 'create_telemetry',
]
