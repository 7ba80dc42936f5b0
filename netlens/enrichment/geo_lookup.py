"""
Geographic / ISP lookup via ip-api.com
"""

import logging
from typing import Optional

import httpx

from ..config import GeoConfig
from ..models import GeoInfo


logger = logging.getLogger(__name__)


def _text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_geo_response(data: object) -> Optional[GeoInfo]:
    """
    Build GeoInfo from an ip-api style JSON object.

    Any field may be missing. A response that explicitly reports
    ``status: fail`` or carries no usable field yields None.
    """
    if not isinstance(data, dict):
        return None
    if data.get('status') == 'fail':
        return None

    geo = GeoInfo(
        country=_text(data, 'country'),
        country_code=_text(data, 'countryCode'),
        region=_text(data, 'region'),
        city=_text(data, 'city'),
        isp=_text(data, 'isp'),
        org=_text(data, 'org'),
        asn=_text(data, 'as'),
        proxy=data.get('proxy') is True,
        hosting=data.get('hosting') is True,
    )
    if geo == GeoInfo():
        return None
    return geo


class GeoLookup:
    """
    Geographic IP lookup via ip-api.com.

    Free tier: 45 requests/minute (sufficient for traceroute).
    No API key required. Pass ``client`` to share an httpx client or to
    substitute a mock transport; otherwise one is created lazily and
    closed by ``close()``.
    """

    def __init__(self, config: Optional[GeoConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config or GeoConfig()
        self._client = client
        self._owns_client = client is None
        self.requests = 0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def lookup(self, ip: str) -> Optional[GeoInfo]:
        """
        Lookup geo info for single IP.

        Args:
            ip: IP address

        Returns:
            GeoInfo or None when the service fails or knows nothing
        """
        if not ip:
            return None

        self.requests += 1
        try:
            client = await self._get_client()
            response = await client.get(
                self.config.api_url.format(ip=ip),
                params={'fields': self.config.fields},
            )
            if response.status_code != 200:
                logger.debug("Geo lookup for %s returned HTTP %s", ip, response.status_code)
                return None
            return parse_geo_response(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Geo lookup for %s failed: %s", ip, e)
            return None

    async def close(self):
        """Close HTTP client if this lookup created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
