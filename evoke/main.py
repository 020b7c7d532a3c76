"""
EvokeEssence settlement service — FastAPI application entry point.

Configures the app, builds the process-wide RateCache, and registers all
API routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from evoke.api import admin, contractors, deposits, rates
from evoke.config import settings
from evoke.redis_client import redis
from evoke.services.rate_service import build_rate_cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    from evoke.database import engine

    yield

    # Shutdown: close connections
    await engine.dispose()
    await redis.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Deposit commission, contractor attribution, and currency settlement.",
    version="0.1.0",
    lifespan=lifespan,
)

# One cache per process, shared by every request
app.state.rate_cache = build_rate_cache(redis)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(rates.router, prefix="/api/v1/rates", tags=["Rates"])
app.include_router(deposits.router, prefix="/api/v1/deposits", tags=["Deposits"])
app.include_router(contractors.router, prefix="/api/v1/contractors", tags=["Contractors"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "0.1.0",
    }
