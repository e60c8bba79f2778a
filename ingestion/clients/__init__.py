"""
Polygon.io API clients
"""
from .polygon_client import PolygonClient
from .aggregates_client import AggregatesClient
from .trades_client import TradesClient
from .reference_client import ReferenceClient

__all__ = [
    'PolygonClient',
    'AggregatesClient',
    'TradesClient',
    'ReferenceClient'
]
