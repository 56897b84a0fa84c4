"""Enrichment of parsed log records: device, user agent, URL and country."""
from .enricher import Enricher
from .geo import GeoCache, GeoResolver, create_reader
from .schemas import DeviceType, EnrichedVisit

__all__ = ["Enricher", "GeoCache", "GeoResolver", "create_reader", "DeviceType", "EnrichedVisit"]
