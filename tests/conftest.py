"""
Test Suite Configuration
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from stats_dashboard.config import Settings
from stats_dashboard.ingestion.records import ProductRecord

TODAY = date(2026, 3, 15)
NOW_MS = int(datetime.combine(TODAY, time(12), tzinfo=timezone.utc).timestamp() * 1000)
DAY_MS = 24 * 3600 * 1000


def last_update_for(days_ago: int, hour: int = 9) -> str:
    """ISO timestamp (Z) of a product updated `days_ago` days before TODAY"""
    moment = datetime.combine(TODAY - timedelta(days=days_ago), time(hour), tzinfo=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def make_raw(
    supplier: str = "acme",
    brand: str = "zeta",
    type: str = "shoes",
    article: str = "a1",
    days_ago: int = 0,
    cost: Optional[List[Optional[float]]] = None,
    orders: Optional[List[Optional[float]]] = None,
    returns: Optional[List[Optional[float]]] = None,
) -> Dict[str, Any]:
    """JSON-shaped product row as the stats API delivers it"""
    return {
        "supplier": supplier,
        "brand": brand,
        "type": type,
        "article": article,
        "lastUpdate": last_update_for(days_ago),
        "cost": cost if cost is not None else [10.0] * 30,
        "orders": orders if orders is not None else [3.0] * 30,
        "returns": returns if returns is not None else [1.0] * 30,
    }


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now_ms() -> int:
    return NOW_MS


@pytest.fixture
def raw_product() -> Callable[..., Dict[str, Any]]:
    """Factory for JSON-shaped product rows"""
    return make_raw


@pytest.fixture
def make_product() -> Callable[..., ProductRecord]:
    """Factory for validated product records"""
    def factory(**kwargs) -> ProductRecord:
        return ProductRecord.model_validate(make_raw(**kwargs))
    return factory


@pytest.fixture
def sample_products(make_product) -> List[ProductRecord]:
    """Two suppliers, mixed staleness and gaps"""
    return [
        make_product(article="a1", days_ago=0),
        make_product(article="a2", days_ago=3, orders=[5.0, None, 7.0] + [2.0] * 27),
        make_product(type="boots", article="a3", days_ago=12, cost=[40.0] * 30),
        make_product(brand="kappa", article="a4", days_ago=29),
        make_product(supplier="globex", brand="omega", type="lamps", article="b1", days_ago=1, cost=[25.0] * 30),
        make_product(supplier="globex", brand="omega", type="lamps", article="b2", days_ago=31),
    ]


@pytest.fixture
def executor():
    """Single-thread executor for aggregation service tests"""
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="test-aggregation")
    yield pool
    pool.shutdown(wait=True)
