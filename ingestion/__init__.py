"""
Ingestion package - Polygon clients, fetch pipeline and per-table jobs
"""

__version__ = '1.0.0'
