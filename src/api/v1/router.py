from fastapi import APIRouter

from .endpoints import health, ingest

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])

# Ingestion triggers: /process-article, /process-articles, /run-job-now
api_router.include_router(ingest.router, tags=["ingestion"])
