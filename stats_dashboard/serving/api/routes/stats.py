"""
Stats API Endpoints

Metric catalogue, window dates, full metric trees and the server-side row
model used by the hierarchical grid.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from stats_dashboard.aggregation.engine import WireTree
from stats_dashboard.aggregation.metrics import InvalidMetricError, Metric
from stats_dashboard.aggregation.window import window_dates
from stats_dashboard.ingestion.client import StatsApiError
from stats_dashboard.serving.api.dependencies import get_aggregation_service
from stats_dashboard.serving.dispatcher import AggregationService, SupersededRequestError
from stats_dashboard.serving.paging import get_rows

router = APIRouter()


class MetricInfo(BaseModel):
    """Selectable metric"""
    metric: str
    label: str
    additive: bool


class DatesResponse(BaseModel):
    """Column dates, slot 0 first"""
    dates: List[str]


class RowsRequest(BaseModel):
    """Server-side row model request"""
    model_config = ConfigDict(populate_by_name=True)

    metric: str
    group_keys: List[str] = Field(default_factory=list, alias="groupKeys")
    start_row: int = Field(default=0, ge=0, alias="startRow")
    end_row: Optional[int] = Field(default=None, ge=0, alias="endRow")


class GridRow(BaseModel):
    """One tree node as a grid row"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    level: str
    level_label: str = Field(alias="levelLabel")
    name: str
    group: bool
    child_ids: List[str] = Field(alias="childIds")
    metric_data: List[Optional[float]] = Field(alias="metricData")
    sum: Optional[float] = None
    average: Optional[float] = None


class RowsResponse(BaseModel):
    """Rows of one level plus the level's total row count"""
    model_config = ConfigDict(populate_by_name=True)

    metric: str
    rows: List[GridRow]
    row_count: int = Field(alias="rowCount")


async def _load_tree(service: AggregationService, metric: str) -> WireTree:
    try:
        return await service.get_tree(metric)
    except InvalidMetricError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SupersededRequestError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StatsApiError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/metrics", response_model=List[MetricInfo])
async def list_metrics() -> List[MetricInfo]:
    """List selectable metrics."""
    return [
        MetricInfo(metric=m.value, label=m.label, additive=m.is_additive)
        for m in Metric
    ]


@router.get("/dates", response_model=DatesResponse)
async def get_dates() -> DatesResponse:
    """Dates labelling the 30 day columns, today first."""
    return DatesResponse(dates=window_dates())


@router.get("/{metric}/tree")
async def get_metric_tree(
    metric: str,
    service: AggregationService = Depends(get_aggregation_service),
) -> Dict[str, Any]:
    """Full node map of a metric."""
    return await _load_tree(service, metric)


@router.post("/rows", response_model=RowsResponse)
async def get_grid_rows(
    request: RowsRequest,
    service: AggregationService = Depends(get_aggregation_service),
) -> RowsResponse:
    """
    Rows for the grid's server-side row model.

    Empty groupKeys returns suppliers; otherwise the children of the last
    expanded group, sliced to [startRow, endRow).
    """
    if request.end_row is not None and request.end_row < request.start_row:
        raise HTTPException(status_code=400, detail="endRow must not be less than startRow")

    tree = await _load_tree(service, request.metric)
    page = get_rows(tree, request.group_keys, request.start_row, request.end_row)

    return RowsResponse(
        metric=request.metric,
        rows=[GridRow.model_validate(row) for row in page.rows],
        row_count=page.row_count,
    )
