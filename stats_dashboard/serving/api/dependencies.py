"""
API Dependencies
"""

from fastapi import HTTPException, Request

from stats_dashboard.serving.dispatcher import AggregationService


def get_aggregation_service(request: Request) -> AggregationService:
    """Aggregation service created by the application lifespan"""
    service = getattr(request.app.state, "aggregation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Aggregation service not initialized")
    return service
