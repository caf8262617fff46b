"""
Metrics API Router - Upstream adapter call stats

Endpoints:
- GET /api/metrics - All adapter stats
- GET /api/metrics/errors - Recent failed attempts
- GET /api/metrics/{service} - Stats for one adapter (orbiter, hop)
"""

from fastapi import APIRouter, HTTPException
from infrastructure.api_metrics import api_metrics

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("")
async def get_all_metrics():
    """Per-adapter success rates and response times, plus totals"""
    return api_metrics.get_all_stats()


@router.get("/errors")
async def get_recent_errors(limit: int = 20):
    errors = api_metrics.get_recent_errors(limit)
    return {"count": len(errors), "errors": errors}


@router.get("/{service}")
async def get_service_metrics(service: str):
    stats = api_metrics.get_service_stats(service)
    if stats.get("status") == "no_data":
        raise HTTPException(status_code=404, detail=f"No data for service: {service}")
    return stats
