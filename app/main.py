"""
Main FastAPI application for the inference job pipeline.
Serves job intake and status, credit balance, health and metrics.
Jobs run in the separate worker process (app.workers.main).
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.api.routes import credits, health, jobs
from app.utils.metrics import router as metrics_router



app = FastAPI(
    title="Inference Job Pipeline API",
    description="Queued body-measurement and garment imaging jobs",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(jobs.router)
app.include_router(credits.router)
app.include_router(metrics_router)
