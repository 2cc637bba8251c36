import asyncio

from photo_pipeline.config.settings import Settings
from photo_pipeline.logging.logger import Log
from photo_pipeline.worker.reconciler import Reconciler


class ReconciliationWorker:
    """Poll loop: sweep -> sleep."""

    def __init__(self, reconciler: Reconciler, settings: Settings) -> None:
        self._reconciler = reconciler
        self._settings = settings

    async def run(self, max_sweeps: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_sweeps is set, stop after that many sweeps (for testing).
        """
        Log.info("Reconciliation worker started")
        sweeps_done = 0
        try:
            while max_sweeps is None or sweeps_done < max_sweeps:
                await self._try_sweep()
                sweeps_done += 1
                if max_sweeps is not None and sweeps_done >= max_sweeps:
                    break
                await asyncio.sleep(self._settings.reconcile_interval_seconds)
        except (KeyboardInterrupt, asyncio.CancelledError):
            Log.info("Reconciliation worker shutting down gracefully")

    async def _try_sweep(self) -> None:
        """Run one sweep. Storage and database errors are logged and retried next cycle."""
        try:
            await self._reconciler.sweep()
        except Exception as exc:
            Log.warning(f"Reconcile sweep failed, will retry: {exc}")
