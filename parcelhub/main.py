import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parcelhub import __version__
from parcelhub.api import create_api_router
from parcelhub.core.config import get_settings
from parcelhub.core.container import ApplicationContainer, get_container
from parcelhub.core.logging import configure_logging
from parcelhub.infrastructure.database.session import dispose_engine, init_db
from parcelhub.schemas import HealthResponse

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    await init_db()
    container = get_container()
    if settings.run_background_workers:
        container.start_background()
    logger.info("%s %s started (%s)", settings.project_name, __version__, settings.environment)
    try:
        yield
    finally:
        await container.shutdown()
        await dispose_engine()
        get_container.cache_clear()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        description="Multi-partner parcel booking with a prepaid wallet",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health(container: ApplicationContainer = Depends(get_container)) -> HealthResponse:
        return HealthResponse(
            partners=container.registry.names(),
            booking_worker=container.worker.running,
            tracking_reconciler=container.reconciler.running,
        )

    return app


app = create_app()
