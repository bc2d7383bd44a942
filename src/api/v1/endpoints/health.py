from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request

from ....config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    pipeline = getattr(request.app.state, "pipeline", None)
    status = "healthy" if pipeline is not None else "starting"

    return {
        "status": status,
        "service": "News Rewrite Ingest",
        "version": "0.1.0",
        "environment": "development" if settings.debug else "production",
        "worker": pipeline.worker.status() if pipeline is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
