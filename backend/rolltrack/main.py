import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rolltrack.config import settings
from rolltrack.middleware.exceptions import register_exception_handlers
from rolltrack.routers import health, production, rolls, shipments

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="RollTrack",
    description="Production batch and fabric roll lifecycle engine",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(production.router, prefix="/api/production", tags=["production"])
app.include_router(rolls.router, prefix="/api/rolls", tags=["rolls"])
app.include_router(shipments.router, prefix="/api/shipments", tags=["shipments"])
