import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...dependencies import get_orchestrator, get_worker
from ....exceptions import ValidationError
from ....news.models.article import ArticleCandidate, ArticleRecord, ProcessingState, DEFAULT_CATEGORY, DEFAULT_SOURCE
from ....news.schemas.requests import ProcessArticleRequest, ProcessArticlesRequest
from ....news.schemas.responses import (
    ErrorResponse,
    ProcessArticleResponse,
    ProcessArticlesResponse,
    TriggerResponse,
)
from ....news.services.ingestion_orchestrator import IngestionOrchestrator
from ....news.services.ingestion_worker import IngestionWorker
from ....utils.url_utils import validate_url

logger = structlog.get_logger(__name__)

router = APIRouter()


def _error(status_code: int, error: str, details) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump()
    )


@router.post("/process-article", response_model=ProcessArticleResponse)
async def process_article(
    request: ProcessArticleRequest,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
):
    """Run the ingestion pipeline for one article and return its outcome"""
    validate_url(request.url)

    candidate = ArticleCandidate(
        url=request.url,
        title=request.title,
        description=request.description,
        image_url=request.image_url,
        published_at=request.published_at,
        source=request.source or DEFAULT_SOURCE,
        category=request.category or DEFAULT_CATEGORY,
    )
    outcome = await orchestrator.process_article(candidate)

    if outcome.state == ProcessingState.FAILED:
        return _error(500, "Processing failed", outcome.error)

    if outcome.state == ProcessingState.SKIPPED:
        document = orchestrator.repository.get(candidate.url)
        if document:
            outcome.record = ArticleRecord.from_document(document)

    return {"success": True, "data": outcome.to_dict()}


@router.post("/process-articles", response_model=ProcessArticlesResponse, response_model_exclude_none=True)
async def process_articles(
    request: ProcessArticlesRequest,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator)
):
    """Deduplicate, filter already-complete URLs and process the rest in batches"""
    try:
        summary = await orchestrator.process_urls(request.urls, batch_size=request.batch_size)
    except ValidationError:
        raise
    except Exception as e:
        logger.error("Processing failed", error=str(e), exc_info=True)
        return _error(500, "Processing failed", str(e))

    if not summary.batches:
        return {"success": True, "processed": 0, "data": [], "message": "No new articles to process"}

    persisted = [outcome.record.to_response() for outcome in summary.outcomes if outcome.persisted]
    return {
        "success": True,
        "processed": len(persisted),
        "data": persisted,
        "failedBatches": summary.failed,
    }


@router.get("/run-job-now", status_code=202, response_model=TriggerResponse)
async def run_job_now(worker: IngestionWorker = Depends(get_worker)):
    """Queue a feed poll and acknowledge immediately"""
    result = worker.trigger("manual")
    return {"success": True, "accepted": result.accepted, "message": result.message}
