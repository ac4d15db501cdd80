"""
Product Records

Typed model of the flat per-product rows delivered by the stats API, and the
log-and-skip parser that turns a raw JSON batch into records. One bad row
never aborts a batch of tens of thousands.
"""

from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from stats_dashboard.aggregation.levels import NODE_ID_SEPARATOR, create_node_id

logger = structlog.get_logger(__name__)


class ProductRecord(BaseModel):
    """
    One product's daily series.

    Index 0 of every series is the day of ``last_update``; index i is
    ``last_update`` minus i days. Series may be shorter than the window and
    may contain nulls for days without data.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )

    supplier: str
    brand: str
    type: str
    article: str
    last_update: datetime = Field(alias="lastUpdate")
    cost: List[Optional[float]] = Field(default_factory=list)
    orders: List[Optional[float]] = Field(default_factory=list)
    returns: List[Optional[float]] = Field(default_factory=list)

    @field_validator("supplier", "brand", "type", "article")
    @classmethod
    def clean_segment(cls, v: str) -> str:
        """Trim padding (the API pads articles) and keep ids unambiguous"""
        v = v.strip()
        if NODE_ID_SEPARATOR in v:
            raise ValueError(f"must not contain {NODE_ID_SEPARATOR!r}")
        return v

    @property
    def identity(self) -> Tuple[str, str, str, str]:
        return (self.supplier, self.brand, self.type, self.article)

    @property
    def node_id(self) -> str:
        """Id of the article node this record populates"""
        return create_node_id(*self.identity)


def parse_products(rows: Iterable[Any]) -> List[ProductRecord]:
    """
    Validate a raw batch of product rows.

    Malformed rows (missing identifying fields, unparseable lastUpdate,
    non-numeric series) are logged and skipped.

    Args:
        rows: JSON-decoded product objects

    Returns:
        Valid records, in input order
    """
    records: List[ProductRecord] = []
    skipped = 0

    for index, row in enumerate(rows):
        try:
            records.append(ProductRecord.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "Skipping malformed product record",
                index=index,
                error_count=e.error_count(),
                error=str(e),
            )

    logger.info(
        "Parsed product records",
        total=len(records) + skipped,
        accepted=len(records),
        skipped=skipped,
    )
    return records
