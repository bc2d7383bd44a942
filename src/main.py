import logging
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.v1.router import api_router
from .config import get_settings
from .core.firebase import get_firestore_client
from .exceptions import ValidationError
from .news.pipeline import build_pipeline


def apply_logging_preferences(settings):
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def configure_logging(settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s"
    )

    apply_logging_preferences(settings)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: a missing credential aborts here, before any request is served
    logger.info("Starting News Rewrite Ingest", version="0.1.0")
    try:
        settings.validate_required()
        db = get_firestore_client(settings)
        app.state.pipeline = build_pipeline(settings, db)
    except Exception as e:
        logger.error("Failed to initialize ingestion pipeline", error=str(e))
        raise

    await app.state.pipeline.worker.start()

    yield

    await app.state.pipeline.worker.stop()
    logger.info("Shutting down News Rewrite Ingest")


def create_application() -> FastAPI:
    app = FastAPI(
        title="News Rewrite Ingest",
        description="RSS ingestion with content extraction, AI rewriting and idempotent Firestore persistence",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(part) for part in error.get("loc", [])[1:]), "message": error.get("msg")}
            for error in exc.errors()
        ]
        logger.info("Rejected invalid request", path=request.url.path, errors=errors)
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": errors})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception occurred",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "details": str(exc),
            }
        )

    app.include_router(api_router)

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="info",
        access_log=False,
    )
