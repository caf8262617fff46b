"""
Bridge Eligibility API
FastAPI backend scoring airdrop eligibility from Orbiter and Hop bridge activity
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.bridge_router import router as bridge_router
from api.metrics_router import router as metrics_router
from config.settings import get_settings
from data_sources import hop_client, orbiter_client

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("[Startup] Bridge eligibility API ready")
    yield
    await orbiter_client.close()
    await hop_client.close()
    logger.info("[Shutdown] Adapter clients closed")


app = FastAPI(
    title="Bridge Eligibility API",
    description="Cross-protocol bridge activity analysis and airdrop eligibility scoring",
    version="2.0.0",
    lifespan=lifespan,
)

# CORS - Restricted origins in production
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if settings.production else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
    expose_headers=["X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

app.include_router(bridge_router)
app.include_router(metrics_router)


# ============================================
# HEALTH CHECK
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint for deployment platforms"""
    return {"status": "healthy", "service": "bridge-eligibility"}


# ============================================
# RUN
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
