from fastapi import Depends, HTTPException, Request

from ..news.pipeline import NewsPipeline
from ..news.services.ingestion_orchestrator import IngestionOrchestrator
from ..news.services.ingestion_worker import IngestionWorker


def get_pipeline(request: Request) -> NewsPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Ingestion pipeline is not initialized")
    return pipeline


def get_orchestrator(pipeline: NewsPipeline = Depends(get_pipeline)) -> IngestionOrchestrator:
    return pipeline.orchestrator


def get_worker(pipeline: NewsPipeline = Depends(get_pipeline)) -> IngestionWorker:
    return pipeline.worker
