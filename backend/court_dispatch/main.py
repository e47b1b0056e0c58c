import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from court_dispatch.database import engine, init_db
from court_dispatch.routes import courts, desk, dispatch, matches, tournaments
from court_dispatch.services.auto_dispatch_runner import DEFAULT_INTERVAL_SECONDS, AutoDispatchRunner

logger = logging.getLogger(__name__)

app = FastAPI(title="Court Dispatch API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(courts.router, prefix="/api", tags=["courts"])
app.include_router(matches.router, prefix="/api", tags=["matches"])
app.include_router(dispatch.router, prefix="/api", tags=["dispatch"])

# Desk runtime console (staff-only)
app.include_router(desk.router, prefix="/api", tags=["desk"])


def auto_dispatch_interval() -> float:
    raw = os.getenv("AUTO_DISPATCH_INTERVAL_SECONDS", str(DEFAULT_INTERVAL_SECONDS))
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid AUTO_DISPATCH_INTERVAL_SECONDS=%r, using %s", raw, DEFAULT_INTERVAL_SECONDS)
        return DEFAULT_INTERVAL_SECONDS


auto_dispatch_runner = AutoDispatchRunner(engine, interval_seconds=auto_dispatch_interval())


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    if auto_dispatch_runner.interval_seconds > 0:
        auto_dispatch_runner.start()
    else:
        logger.info("Auto-dispatch runner disabled")


@app.on_event("shutdown")
def on_shutdown():
    auto_dispatch_runner.stop(timeout=auto_dispatch_runner.interval_seconds + 1)


@app.get("/api/health")
def health_check():
    return {
        "app_name": "Court Dispatch API",
        "status": "healthy",
        "auto_dispatch_running": auto_dispatch_runner.running,
    }
