"""
Exam Grader API - main entry point.
Creates FastAPI app, wires the application-owned collaborators, sets up
lifespan, CORS, request timing middleware and registers all routes.
"""

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from examgrader.config import logger, get_version_info, GradingConfig
from examgrader.database import client, db
from examgrader.deps import get_evaluation_store
from examgrader.routes import register_all_routes
from examgrader.services.drafts import MongoDraftStore
from examgrader.services.rate_limiter import RateLimiter
from examgrader.services.request_builder import create_grading_chat
from examgrader.services.settings_provider import (
    ConfigProvider,
    DatabaseSettingsSource,
    EnvironmentSettingsSource,
)
from examgrader.services.storage import EvaluationStore, MongoEvaluationStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - checks grading settings, closes the DB client"""
    logger.info("🚀 FastAPI app starting up...")
    settings = await app.state.config_provider.get_settings()
    if settings:
        logger.info(f"✅ Grading model configured: {settings.model}")
    else:
        logger.warning("⚠️  No Gemini API key configured - evaluations will be rejected until one is set")
    logger.info("=" * 60)

    yield

    logger.info("🛑 FastAPI app shutting down...")
    client.close()


app = FastAPI(title="Exam Grader API", lifespan=lifespan)

# Collaborators owned by the app and injected into routes via examgrader.deps
app.state.evaluation_store = MongoEvaluationStore(db)
app.state.draft_store = MongoDraftStore(db)
app.state.rate_limiter = RateLimiter()
app.state.config_provider = ConfigProvider([EnvironmentSettingsSource(), DatabaseSettingsSource(db)])
app.state.chat_factory = create_grading_chat
app.state.grading_config = GradingConfig.from_env()

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


@api_router.get("/version")
async def get_version():
    """Public version endpoint for deployment verification"""
    return get_version_info()


@api_router.get("/health")
async def api_health_check(store: EvaluationStore = Depends(get_evaluation_store)):
    """Health check including the database connection"""
    try:
        await store.ping()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        raise HTTPException(status_code=503, detail="Database connection failed")
    return {"status": "OK", "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}


# Register all route modules on the api_router
register_all_routes(api_router)

# Include the api_router on the app
app.include_router(api_router)


# Root-level health check endpoint (for Kubernetes probes)
@app.get("/health")
async def root_health_check():
    """Health check for Kubernetes liveness/readiness probes"""
    return {"status": "healthy", "service": "Exam Grader API"}


# ============== REQUEST TIMING MIDDLEWARE ==============

@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Log method, path, status and latency for every request"""
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Request failed: {request.method} {request.url.path}: {e}")
        raise
    response_time_ms = int((time.time() - start_time) * 1000)
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({response_time_ms}ms)")
    return response


# ============== CORS ==============

cors_origins_env = os.environ.get("CORS_ORIGINS")
cors_origins = [origin.strip() for origin in cors_origins_env.split(",")] if cors_origins_env else [
    "http://localhost:3000",
    "http://127.0.0.1:3000"
]

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
