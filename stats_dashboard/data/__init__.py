"""
Data Generation Module
"""
from .generators import ProductStatsGenerator

__all__ = [
    "ProductStatsGenerator",
]
