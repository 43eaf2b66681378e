import asyncio
from unittest.mock import MagicMock

import pytest

from envelope_categorizer.services.training import RetrainScheduler


@pytest.fixture
def mock_service() -> MagicMock:
    service = MagicMock()
    service.retrain.return_value = {"status": "success", "trained": 12, "skipped": 2, "total": 14}
    return service


@pytest.mark.anyio
async def test_run_once_records_status(mock_service: MagicMock) -> None:
    scheduler = RetrainScheduler(service=mock_service, interval_seconds=60)

    status = await scheduler.run_once()

    mock_service.retrain.assert_called_once()
    assert status["stage"] == "complete"
    assert status["trained"] == 12
    assert status["skipped"] == 2
    assert status["runs"] == 1
    assert status["active"] is False
    assert status["duration_display"]


@pytest.mark.anyio
async def test_run_once_records_failure(mock_service: MagicMock) -> None:
    mock_service.retrain.side_effect = RuntimeError("history unavailable")
    scheduler = RetrainScheduler(service=mock_service, interval_seconds=60)

    status = await scheduler.run_once()

    assert status["stage"] == "error"
    assert status["message"] == "history unavailable"
    assert scheduler.get_status()["runs"] == 1


@pytest.mark.anyio
async def test_start_and_stop(mock_service: MagicMock) -> None:
    scheduler = RetrainScheduler(service=mock_service, interval_seconds=0.01)

    task = scheduler.start()
    assert scheduler.start() is task
    await asyncio.sleep(0.1)
    assert scheduler.active
    await scheduler.stop()

    assert not scheduler.active
    assert task.done()
    assert mock_service.retrain.call_count >= 1
    assert scheduler.get_status()["stage"] == "complete"


@pytest.mark.anyio
async def test_start_after_stop_creates_new_task(mock_service: MagicMock) -> None:
    scheduler = RetrainScheduler(service=mock_service, interval_seconds=0.01)

    first = scheduler.start()
    await scheduler.stop()
    second = scheduler.start()

    assert second is not first
    assert scheduler.active
    await scheduler.stop()
    assert second.done()
