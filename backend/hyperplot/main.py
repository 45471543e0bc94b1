from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hyperplot.config import settings
from hyperplot.api.routes import router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="HyperPlot",
    description=(
        "Match Dubai parcel briefs to real plots and run development "
        "feasibility on them."
    ),
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "HyperPlot",
        "version": "1.0.0",
        "endpoints": {
            "api_docs": "/docs",
            "health": "/health",
            "normalize": "POST /api/v1/parcels/normalize",
            "match": "POST /api/v1/parcels/match",
            "match_with_fallback": "POST /api/v1/parcels/match-with-fallback",
            "similar": "POST /api/v1/parcels/similar",
            "market_assumptions": "POST /api/v1/market-assumptions",
            "feasibility": "POST /api/v1/feasibility",
            "mix_strategies": "GET /api/v1/mix-strategies",
            "area_profiles": "GET /api/v1/area-profiles",
        },
    }


@app.get("/health")
async def health():
    """Health check with dependency status."""
    status = {"status": "healthy", "version": "1.0.0"}

    # Check Redis
    try:
        from hyperplot.services.cache import get_redis
        r = await get_redis()
        if r:
            await r.ping()
            status["redis"] = "connected"
        else:
            status["redis"] = "not configured"
    except Exception as e:
        status["redis"] = f"error: {e}"

    status["gis"] = settings.gis_base_url
    status["owner_sheet"] = "configured" if settings.sheets_api_key and settings.sheets_spreadsheet_id else "not configured"
    return status
