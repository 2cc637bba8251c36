import asyncio
from datetime import timedelta

import uvicorn

from photo_pipeline.api.app import create_app
from photo_pipeline.config.settings import Settings
from photo_pipeline.database.connection import close_pool, init_pool
from photo_pipeline.database.repositories.photo_repository import PhotoRepository
from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.factory import StorageFactory
from photo_pipeline.worker.reconciler import Reconciler
from photo_pipeline.worker.worker import ReconciliationWorker


def main() -> None:
    """Entry point for the upload API: configure logging -> serve."""
    settings = Settings()
    Log.configure(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


async def _run_reconciler(settings: Settings) -> None:
    await init_pool(settings)
    try:
        reconciler = Reconciler(
            PhotoRepository(),
            StorageFactory.create(settings),
            grace_period=timedelta(minutes=settings.reconcile_grace_period_minutes),
            staging_prefix=settings.storage_staging_prefix,
            staging_max_age=timedelta(minutes=settings.reconcile_staging_max_age_minutes),
        )
        worker = ReconciliationWorker(reconciler, settings)
        await worker.run()
    finally:
        await close_pool()


def reconcile() -> None:
    """Entry point for the orphan reconciler: initialize pool -> sweep loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    try:
        asyncio.run(_run_reconciler(settings))
    except KeyboardInterrupt:
        Log.info("Reconciler stopped")


if __name__ == "__main__":
    main()
