import asyncio
import contextlib
from time import perf_counter
from typing import Any

from envelope_categorizer.domain.timefmt import format_duration
from envelope_categorizer.logger import get_logger
from envelope_categorizer.manager import CategorizerService

logger = get_logger(__name__)


class RetrainScheduler:
    """Periodically rebuilds the envelope models of a ``CategorizerService``.

    Training runs in a worker thread so the event loop stays responsive.
    A failed run is logged and recorded in the status; the loop continues.
    """

    def __init__(self, service: CategorizerService, interval_seconds: float) -> None:
        self.service = service
        self.interval_seconds = interval_seconds
        self.stop_event = asyncio.Event()
        self.task: asyncio.Task[None] | None = None
        self.runs = 0
        self.status: dict[str, Any] = {"stage": "idle", "active": False, "runs": 0}

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()

    def get_status(self) -> dict[str, Any]:
        status = dict(self.status)
        status["active"] = self.active
        return status

    async def run_once(self) -> dict[str, Any]:
        logger.info("[SCHEDULER] Retraining envelope models...")
        self.status.update({"stage": "training"})
        start = perf_counter()
        try:
            result = await asyncio.to_thread(self.service.retrain)
        except Exception as e:
            duration = perf_counter() - start
            self.runs += 1
            logger.exception("[SCHEDULER] Retraining failed after %s", format_duration(duration))
            self.status.clear()
            self.status.update({
                "stage": "error",
                "message": str(e),
                "duration": duration,
                "duration_display": format_duration(duration),
                "runs": self.runs,
            })
            return self.get_status()

        duration = perf_counter() - start
        self.runs += 1
        logger.info(
            "[SCHEDULER] Retraining complete in %s. Trained: %s, Skipped: %s",
            format_duration(duration),
            result.get("trained", 0),
            result.get("skipped", 0),
        )
        self.status.clear()
        self.status.update({
            "stage": "complete",
            "trained": result.get("trained", 0),
            "skipped": result.get("skipped", 0),
            "total": result.get("total", 0),
            "duration": duration,
            "duration_display": format_duration(duration),
            "runs": self.runs,
        })
        return self.get_status()

    async def run_forever(self) -> None:
        while not self.stop_event.is_set():
            await self.run_once()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval_seconds)

    def start(self) -> asyncio.Task[None]:
        if self.task is not None and not self.task.done():
            return self.task
        self.stop_event.clear()
        self.task = asyncio.create_task(self.run_forever())
        logger.info("[SCHEDULER] Started; retraining every %s", format_duration(self.interval_seconds))
        return self.task

    async def stop(self) -> None:
        self.stop_event.set()
        if self.task is not None:
            await self.task
            self.task = None
        logger.info("[SCHEDULER] Stopped.")
