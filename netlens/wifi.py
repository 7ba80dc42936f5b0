"""
WiFi channel congestion analysis
"""

import logging
from typing import Iterable, Optional

from .config import WifiConfig
from .exceptions import TelemetryError
from .models import ChannelAnalysis, CongestionLevel, WifiConnection, WifiNetwork
from .telemetry import PlatformTelemetry, create_telemetry


logger = logging.getLogger(__name__)

CHANNELS_24 = range(1, 14)


def is_24ghz(channel: int) -> bool:
    return 1 <= channel <= 13


def is_5ghz(channel: int) -> bool:
    return channel > 30


class ChannelCongestionAnalyzer:
    """
    Computes channel occupancy and a recommendation from a WiFi inventory.

    On 2.4GHz every network also counts against the channels within
    ``overlap_radius`` of its own (adjacent-channel interference); the
    best channel is picked among the non-overlapping reference channels.
    5GHz channels do not overlap and are counted independently.
    """

    def __init__(self, config: Optional[WifiConfig] = None,
                 telemetry: Optional[PlatformTelemetry] = None):
        self.config = config or WifiConfig()
        self._telemetry = telemetry

    @property
    def telemetry(self) -> PlatformTelemetry:
        if self._telemetry is None:
            self._telemetry = create_telemetry()
        return self._telemetry

    def occupancy_24(self, networks: Iterable[WifiNetwork]) -> dict[int, int]:
        radius = self.config.overlap_radius
        counts = {ch: 0 for ch in CHANNELS_24}
        for net in networks:
            if not is_24ghz(net.channel):
                continue
            for ch in range(max(1, net.channel - radius), min(13, net.channel + radius) + 1):
                counts[ch] += 1
        return counts

    @staticmethod
    def occupancy_5(networks: Iterable[WifiNetwork]) -> dict[int, int]:
        counts: dict[int, int] = {}
        for net in networks:
            if is_5ghz(net.channel):
                counts[net.channel] = counts.get(net.channel, 0) + 1
        return counts

    def congestion_level(self, occupancy: int) -> CongestionLevel:
        if occupancy <= self.config.low_max:
            return CongestionLevel.LOW
        if occupancy <= self.config.medium_max:
            return CongestionLevel.MEDIUM
        return CongestionLevel.HIGH

    def recommend(self, is_best: bool, level: CongestionLevel, occupancy: int, best: int) -> str:
        """Recommendation text for the current channel"""
        if is_best and level == CongestionLevel.LOW:
            return "Current channel is the best choice"
        if not is_best and occupancy > self.config.switch_threshold:
            return f"Consider switching to channel {best}, the current channel is crowded"
        if level == CongestionLevel.HIGH:
            return f"Channel is heavily congested, switch to channel {best} or use 5GHz"
        return "Current channel is in good shape"

    def analyze(self, networks: Iterable[WifiNetwork],
                current: Optional[WifiConnection] = None) -> ChannelAnalysis:
        """
        Analyze a network inventory.

        Args:
            networks: Observed access points
            current: Current association, if any

        Returns:
            ChannelAnalysis; congestion and recommendation are only set
            when the current channel is known
        """
        networks = list(networks)
        occ24 = self.occupancy_24(networks)
        occ5 = self.occupancy_5(networks)

        # min() keeps the first of equal values, so ties go to the lower channel
        reference = sorted(self.config.reference_channels)
        best24 = min(reference, key=lambda ch: occ24[ch])
        best5 = min(sorted(occ5), key=lambda ch: occ5[ch]) if occ5 else None

        current_fields = {}
        channel = current.channel if current else None
        if channel and (is_24ghz(channel) or is_5ghz(channel)):
            if is_24ghz(channel):
                occupancy, best = occ24[channel], best24
            else:
                occupancy, best = occ5.get(channel, 0), best5 or channel
            level = self.congestion_level(occupancy)
            current_fields = dict(
                current_channel=channel,
                current_occupancy=occupancy,
                congestion_level=level,
                recommendation=self.recommend(channel == best, level, occupancy, best),
            )
        elif current is not None:
            logger.debug("Current channel %r is outside known bands", channel)

        return ChannelAnalysis(
            total_networks=len(networks),
            networks_24ghz=sum(1 for n in networks if is_24ghz(n.channel)),
            networks_5ghz=sum(1 for n in networks if is_5ghz(n.channel)),
            best_24_channel=best24,
            best_5_channel=best5,
            occupancy_24=occ24,
            occupancy_5=occ5,
            usage_24={ch: occ24[ch] for ch in reference},
            **current_fields,
        )

    async def scan_and_analyze(self) -> tuple[list[WifiNetwork], ChannelAnalysis]:
        """
        Scan with the platform telemetry and analyze the result.

        A failed scan raises TelemetryError. A missing connection status
        only leaves the current-channel fields empty.
        """
        networks = await self.telemetry.scan_wifi()
        current = None
        try:
            current = await self.telemetry.current_wifi()
        except TelemetryError as e:
            logger.warning("WiFi status unavailable: %s", e)

        return networks, self.analyze(networks, current)
