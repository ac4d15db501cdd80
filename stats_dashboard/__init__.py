"""
Stats Dashboard

Hierarchical supplier/brand/type/article analytics over a trailing 30-day
window of per-product daily metrics.
"""

__version__ = "1.0.0"
