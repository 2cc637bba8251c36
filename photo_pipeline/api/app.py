from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from photo_pipeline.api.errors import (
    UploadFailedError,
    pipeline_error_handler,
    storage_error_handler,
    upload_failed_handler,
)
from photo_pipeline.api.routes import router
from photo_pipeline.config.settings import Settings
from photo_pipeline.database.connection import close_pool, init_pool
from photo_pipeline.logging.logger import Log
from photo_pipeline.moderation.factory import ModeratorFactory
from photo_pipeline.pipeline.exceptions import PipelineError
from photo_pipeline.pipeline.executor import PipelineDependencies, build_dependencies
from photo_pipeline.storage.exceptions import StorageError
from photo_pipeline.storage.factory import StorageFactory
from photo_pipeline.uploads.service import UploadService


def create_app(
    settings: Settings | None = None,
    *,
    deps: PipelineDependencies | None = None,
    manage_pool: bool = True,
) -> FastAPI:
    """Build the upload API.

    Passing ``deps`` wires the service immediately (tests); otherwise the
    lifespan builds storage and moderation from settings on startup.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_pool:
            await init_pool(settings)
        if deps is None:
            built = build_dependencies(
                settings,
                storage=StorageFactory.create(settings),
                moderator=ModeratorFactory.create(settings),
            )
            app.state.upload_service = UploadService(settings, built)
        Log.info(f"Photo upload API started ({settings.app_env})")
        try:
            yield
        finally:
            if manage_pool:
                await close_pool()
            Log.info("Photo upload API stopped")

    app = FastAPI(title="Photo Upload Pipeline", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    if deps is not None:
        app.state.upload_service = UploadService(settings, deps)

    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(UploadFailedError, upload_failed_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.include_router(router)
    return app
