"""
Bridge Analysis API Router - Airdrop eligibility from bridge and LP activity

Endpoints:
- POST /analyze/bridge - Full multi-protocol analysis for {"address": "0x..."}
- GET/PUT/DELETE /analyze/bridge - 405, POST only

Every response uses the same envelope:
    {success, data?, errors?, warnings?, metadata: {requestId, timestamp, processingTime, version}}
"""

import json
import logging
import secrets
import string
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.settings import get_settings
from data_sources.base import is_valid_address
from infrastructure.rate_limiter import FixedWindowRateLimiter, RateLimitConfig
from services.aggregator import BridgeAnalysisAggregator, get_bridge_aggregator
from services.errors import AnalysisError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["bridge"])

API_VERSION = "1.0.0"
REQUEST_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id() -> str:
    suffix = "".join(secrets.choice(REQUEST_ID_ALPHABET) for _ in range(9))
    return f"bridge_{int(time.time() * 1000)}_{suffix}"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return "unknown"


_rate_limiter: Optional[FixedWindowRateLimiter] = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = FixedWindowRateLimiter(RateLimitConfig(
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_s,
        ))
    return _rate_limiter


def envelope(
    status_code: int,
    request_id: str,
    started: float,
    success: bool,
    data: Optional[Dict[str, Any]] = None,
    errors: Optional[List[AnalysisError]] = None,
    warnings: Optional[List[str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": success}
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = [e.to_dict() for e in errors]
    if warnings:
        body["warnings"] = list(warnings)
    body["metadata"] = {
        "requestId": request_id,
        "timestamp": int(time.time() * 1000),
        "processingTime": int((time.perf_counter() - started) * 1000),
        "version": API_VERSION,
    }
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _api_error(code: str, message: str, severity: str, retryable: bool, context: Dict = None) -> AnalysisError:
    return AnalysisError(
        code=code,
        message=message,
        service="api",
        severity=severity,
        retryable=retryable,
        context=context,
    )


@router.post("/bridge")
async def analyze_bridge(
    request: Request,
    aggregator: BridgeAnalysisAggregator = Depends(get_bridge_aggregator),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
):
    """
    Analyze a wallet's Orbiter and Hop activity.

    Returns the combined eligibility score, tier, percentile, historical
    benchmarks and recommendations. Partial failures come back as 200 with
    errors and warnings attached.
    """
    started = time.perf_counter()
    request_id = generate_request_id()

    decision = await limiter.hit(client_ip(request))
    rate_headers = {
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(decision.reset_at)),
    }
    if not decision.allowed:
        logger.info(f"[BridgeAPI] {request_id} rate limited ({client_ip(request)})")
        return envelope(
            429, request_id, started, False,
            errors=[_api_error("RATE_LIMIT_EXCEEDED", "Too many requests. Please try again later.", "medium", True)],
            headers=rate_headers,
        )

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    address = body.get("address") if isinstance(body, dict) else None
    if not isinstance(address, str) or not address:
        return envelope(
            400, request_id, started, False,
            errors=[_api_error("INVALID_ADDRESS", "Address is required and must be a string", "high", False)],
            headers=rate_headers,
        )

    if not is_valid_address(address):
        return envelope(
            400, request_id, started, False,
            errors=[_api_error(
                "INVALID_ADDRESS_FORMAT", "Invalid Ethereum address format", "high", False,
                context={"address": address},
            )],
            headers=rate_headers,
        )

    try:
        outcome = await aggregator.aggregate(address)
    except Exception as e:
        logger.exception(f"[BridgeAPI] {request_id} analysis crashed for {address}")
        return envelope(
            500, request_id, started, False,
            errors=[_api_error(
                "INTERNAL_SERVER_ERROR",
                "An unexpected error occurred during bridge analysis",
                "critical",
                True,
                context={"error": str(e)},
            )],
            headers=rate_headers,
        )

    data = outcome.analysis.model_dump(by_alias=True)

    if outcome.all_sources_failed:
        logger.error(f"[BridgeAPI] {request_id} all bridge sources failed for {address}")
        return envelope(
            500, request_id, started, False,
            data=data, errors=outcome.errors, warnings=outcome.warnings,
            headers=rate_headers,
        )

    logger.info(
        f"[BridgeAPI] {request_id} {address} -> "
        f"{outcome.analysis.overall_metrics.combined_eligibility_score} "
        f"({outcome.analysis.overall_metrics.overall_tier})"
    )
    return envelope(
        200, request_id, started, True,
        data=data, errors=outcome.errors, warnings=outcome.warnings,
        headers=rate_headers,
    )


@router.api_route("/bridge", methods=["GET", "PUT", "DELETE"], include_in_schema=False)
async def bridge_method_not_allowed(request: Request):
    started = time.perf_counter()
    return envelope(
        405, generate_request_id(), started, False,
        errors=[_api_error(
            "METHOD_NOT_ALLOWED",
            f"{request.method} method not supported. Use POST with address in request body.",
            "medium",
            False,
        )],
        headers={"Allow": "POST"},
    )
