"""Caption translator HTTP API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from caption_translator import __version__
from caption_translator.api.routers import jobs, preview
from caption_translator.api.workers import EvictionWorker, JobRunner
from caption_translator.config import Settings, get_settings
from caption_translator.jobs import JobStore
from caption_translator.pipeline import SubtitlePipeline, build_default_pipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    logger.info(f"Starting caption translator API in {settings.environment} mode")
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.jobs_dir.mkdir(parents=True, exist_ok=True)

    eviction_worker = EvictionWorker(app.state.store, settings.eviction_interval_seconds)
    await eviction_worker.start()

    yield

    logger.info("Shutting down caption translator API")
    await eviction_worker.stop()
    await app.state.runner.stop()


def create_app(
    settings: Settings | None = None,
    pipeline: SubtitlePipeline | None = None,
    store: JobStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings)
        pipeline: Pipeline to run jobs with (defaults to the cloud/FFmpeg stack)
        store: Job store (defaults to a new store sized from settings)
    """
    settings = settings or get_settings()
    store = store or JobStore(ttl_seconds=settings.job_ttl_seconds, max_jobs=settings.max_jobs)
    pipeline = pipeline or build_default_pipeline(settings)

    app = FastAPI(
        title="Caption Translator API",
        description="Translate burned-in video subtitles and re-render them",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline
    app.state.runner = JobRunner(pipeline, store, settings.max_concurrent_jobs)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(jobs.router, prefix="/api", tags=["jobs"])
    app.include_router(preview.router, prefix="/api", tags=["preview"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.environment,
            "version": __version__,
            "jobs": store.get_stats()["total_jobs"],
        }

    return app
