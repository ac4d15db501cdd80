"""
Synthetic Product Statistics Generator

Generates flat per-product daily statistics shaped like the upstream stats
API response, for development without an upstream and for the demo
dataset script. Update times are staggered so that a realistic share of
products is partly or fully outside the 30-day window.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

import numpy as np
from faker import Faker

from stats_dashboard.aggregation.window import WINDOW_DAYS, DateLike, to_utc_date, utc_today
from stats_dashboard.ingestion.records import ProductRecord, parse_products


# =============================================================================
# CONFIGURATION
# =============================================================================

PRODUCT_TYPES = [
    "Sneakers", "Boots", "Jackets", "Shirts", "Dresses",
    "Backpacks", "Watches", "Headphones", "Kettles", "Lamps",
]

# (max days since last update, probability)
STALENESS_BUCKETS = [
    (0, 0.55),
    (5, 0.25),
    (29, 0.15),
    (40, 0.05),
]


# =============================================================================
# GENERATORS
# =============================================================================

class ProductStatsGenerator:
    """
    Generate per-product stats rows.

    Example:
        generator = ProductStatsGenerator(seed=7)
        rows = generator.generate_raw(1000)
    """

    def __init__(
        self,
        seed: int = 42,
        suppliers: int = 8,
        brands_per_supplier: int = 4,
    ):
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.rng = np.random.default_rng(seed)
        self.suppliers = [self.fake.unique.company().replace(":", "") for _ in range(suppliers)]
        self.brands = {
            supplier: [self.fake.unique.last_name() for _ in range(brands_per_supplier)]
            for supplier in self.suppliers
        }

    def _last_update(self, today: date) -> datetime:
        bucket = self.rng.choice(len(STALENESS_BUCKETS), p=[p for _, p in STALENESS_BUCKETS])
        low = STALENESS_BUCKETS[bucket - 1][0] + 1 if bucket > 0 else 0
        days_ago = int(self.rng.integers(low, STALENESS_BUCKETS[bucket][0] + 1))
        seconds = int(self.rng.integers(0, 24 * 3600))
        day = today - timedelta(days=days_ago)
        return datetime.combine(day, time(), tzinfo=timezone.utc) + timedelta(seconds=seconds)

    def _series(self) -> Dict[str, List[float]]:
        base_price = float(self.rng.uniform(5, 500))
        drift = self.rng.normal(0, base_price * 0.01, WINDOW_DAYS).cumsum()
        cost = np.round(np.clip(base_price + drift, 1, None), 2)
        orders = self.rng.poisson(float(self.rng.uniform(1, 40)), WINDOW_DAYS)
        returns = self.rng.binomial(orders, float(self.rng.uniform(0.02, 0.3)))
        return {
            "cost": cost.tolist(),
            "orders": orders.astype(float).tolist(),
            "returns": returns.astype(float).tolist(),
        }

    def generate_raw(self, n: int = 1000, today: Optional[DateLike] = None) -> List[Dict[str, Any]]:
        """Generate n JSON-shaped product rows"""
        today_date = to_utc_date(today) if today is not None else utc_today()
        rows = []

        for i in range(n):
            supplier = self.suppliers[int(self.rng.integers(len(self.suppliers)))]
            brands = self.brands[supplier]
            rows.append({
                "supplier": supplier,
                "brand": brands[int(self.rng.integers(len(brands)))],
                "type": PRODUCT_TYPES[int(self.rng.integers(len(PRODUCT_TYPES)))],
                # upstream pads article codes
                "article": f" ART-{i:07d}",
                "lastUpdate": self._last_update(today_date).isoformat().replace("+00:00", "Z"),
                **self._series(),
            })

        return rows

    def generate(self, n: int = 1000, today: Optional[DateLike] = None) -> List[ProductRecord]:
        """Generate n validated product records"""
        return parse_products(self.generate_raw(n, today))
