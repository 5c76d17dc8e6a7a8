"""
Estimate Costing API
FastAPI service over the costing engine: line-item totals, estimate rollups,
version / change-order bookkeeping and the constants table.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from estimator.config import get_cors_origins, get_log_level, load_constants, use_json_logs
from estimator.models.estimate import Constant
from estimator.services.estimate_store import InMemoryEstimateStore
from estimator.services.logging_config import setup_logging
from estimator.services.middleware import RequestTimingMiddleware

load_dotenv()

setup_logging(level=get_log_level(), json_output=use_json_logs())
logger = logging.getLogger("estimator-api")

_PROCESS_START = time.monotonic()
_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = InMemoryEstimateStore()
    app.state.constants = [Constant.model_validate(record) for record in load_constants()]
    logger.info("Estimator started with %d constants", len(app.state.constants))
    yield
    logger.info("Estimator shutting down")


app = FastAPI(
    title="Estimate Costing API",
    version=_VERSION,
    description="Labor, equipment and material costing for construction bids",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from estimator.api.estimate_routes import router as estimate_router  # noqa: E402
from estimator.api.version_routes import router as version_router  # noqa: E402
from estimator.api.settings_routes import router as settings_router  # noqa: E402

app.include_router(estimate_router)
app.include_router(version_router)
app.include_router(settings_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": _VERSION,
        "uptime_s": round(time.monotonic() - _PROCESS_START, 1),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("estimator.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=True)
