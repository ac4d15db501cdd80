"""
Data Ingestion Module
"""
from .records import ProductRecord, parse_products
from .client import StatsApiClient, StatsApiError

__all__ = [
    "ProductRecord",
    "parse_products",
    "StatsApiClient",
    "StatsApiError",
]
