"""
Enrichment modules for NetLens
"""

from .ip_classifier import IPClassifier, IPType, is_private
from .geo_lookup import GeoLookup

__all__ = ['IPClassifier', 'IPType', 'is_private', 'GeoLookup']
