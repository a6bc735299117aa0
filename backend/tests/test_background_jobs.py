from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from helix.db import database
from helix.db.models import EntityKind
from helix.services import background_jobs
from helix.services.record_store import RecordStore
from tests.helpers import source_payload

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session


def test_incremental_sync_job_uses_fresh_session(
    monkeypatch: pytest.MonkeyPatch, session_factory: Callable[[], Session]
) -> None:
    monkeypatch.setattr(database, "SessionLocal", session_factory)
    with session_factory() as db:
        RecordStore(db).create(EntityKind.data_source, source_payload("a", "US", 3))

    summary = background_jobs.run_incremental_sync()

    assert summary["successCount"] == 1
    with session_factory() as db:
        assert RecordStore(db).count_where(EntityKind.legal_case) == 3


def test_scheduler_registers_sync_job_only_when_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    registered: list[str] = []

    class FakeScheduler:
        def __init__(self, **kwargs: object) -> None:
            self.running = False

        def add_job(self, func: object, **kwargs: object) -> None:
            registered.append(str(kwargs["id"]))

        def get_jobs(self) -> list[str]:
            return registered

        def start(self) -> None:
            self.running = True

        def shutdown(self, wait: bool = True) -> None:
            self.running = False

    monkeypatch.setattr(background_jobs, "AsyncIOScheduler", FakeScheduler)

    monkeypatch.setattr(background_jobs.settings, "SYNC_SCHEDULE_ENABLED", False)
    background_jobs.start_scheduler()
    background_jobs.shutdown_scheduler()
    assert registered == ["idempotency_cleanup"]

    registered.clear()
    monkeypatch.setattr(background_jobs.settings, "SYNC_SCHEDULE_ENABLED", True)
    background_jobs.start_scheduler()
    background_jobs.shutdown_scheduler()
    assert registered == ["incremental_sync", "idempotency_cleanup"]
