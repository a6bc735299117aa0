"""
Sync orchestrator

Runs reconciliation over data sources one at a time:

  - a failing source is recorded and the run moves on to the next one
  - only successful sources get their last-sync timestamp advanced
  - at most one reconciliation per jurisdiction is in flight process-wide
  - an optional run deadline marks sources that never started as skipped
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from helix.core.config import settings
from helix.db.models import DataSource, EntityKind, SyncMode, SyncStatus
from helix.services.reconciliation_service import (
    JurisdictionSpec,
    ReconciliationService,
    reconciliation_service,
)
from helix.services.record_store import RecordStore
from helix.utils.exceptions import HelixError, NotFoundError, ReconciliationError
from helix.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class SingleFlight:
    """Keyed locks: at most one holder per key at a time."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._held: Dict[str, int] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[bool]:
        """Yield True once ``key`` is held, or False if ``timeout`` expired first."""
        lock = self._lock_for(key)
        acquired = lock.acquire(timeout=-1 if timeout is None else max(0.0, timeout))
        if not acquired:
            yield False
            return
        with self._guard:
            self._held[key] = self._held.get(key, 0) + 1
        try:
            yield True
        finally:
            with self._guard:
                self._held[key] -= 1
                if not self._held[key]:
                    del self._held[key]
            lock.release()

    def held(self) -> List[str]:
        with self._guard:
            return sorted(self._held)


@dataclass
class SyncResult:
    source_id: str
    status: SyncStatus
    name: str = ""
    jurisdiction: str = ""
    records_affected: int = 0
    previous_count: Optional[int] = None
    final_count: Optional[int] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.source_id,
            "name": self.name,
            "jurisdiction": self.jurisdiction,
            "status": self.status.value,
            "recordsAffected": self.records_affected,
            "previousCount": self.previous_count,
            "finalCount": self.final_count,
            "error": self.error,
            "durationSeconds": round(self.duration_seconds, 3),
        }


@dataclass
class SyncSummary:
    mode: SyncMode
    results: List[SyncResult] = field(default_factory=list)
    started_at: Any = None
    finished_at: Any = None

    @property
    def total_sources(self) -> int:
        return len(self.results)

    def _count(self, status: SyncStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def success_count(self) -> int:
        return self._count(SyncStatus.success)

    @property
    def failure_count(self) -> int:
        return self._count(SyncStatus.error)

    @property
    def skipped_count(self) -> int:
        return self._count(SyncStatus.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.failure_count == 0 and self.skipped_count == 0,
            "message": f"{self.success_count} of {self.total_sources} sources synchronized",
            "mode": self.mode.value,
            "totalSources": self.total_sources,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "skippedCount": self.skipped_count,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "results": [r.to_dict() for r in self.results],
        }


class SyncOrchestrator:
    def __init__(
        self,
        engine: Optional[ReconciliationService] = None,
        single_flight: Optional[SingleFlight] = None,
        lock_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine or reconciliation_service
        self.single_flight = single_flight or SingleFlight()
        self.lock_timeout = settings.SYNC_LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
        self.clock = clock

    def running(self) -> List[str]:
        return self.single_flight.held()

    def _select_sources(
        self, store: RecordStore, source_ids: Optional[Sequence[str]]
    ) -> List[tuple[str, Optional[DataSource]]]:
        if source_ids is None:
            sources = store.get_all(EntityKind.data_source, order_by=DataSource.id, is_active=True)
            return [(s.id, s) for s in sources]
        # explicit subset keeps caller order; unknown ids become error results
        selected: List[tuple[str, Optional[DataSource]]] = []
        for sid in dict.fromkeys(source_ids):
            try:
                selected.append((sid, store.get_by_id(EntityKind.data_source, sid)))
            except NotFoundError:
                selected.append((sid, None))
        return selected

    def _spec_for(self, source: DataSource, targets: Optional[Dict[str, int]]) -> JurisdictionSpec:
        desired = source.target_count or 0
        if targets and source.id in targets:
            desired = int(targets[source.id])
        return JurisdictionSpec(
            code=source.region or "",
            name=source.region_name or source.region or "",
            court=source.court or source.name or "",
            desired=desired,
        )

    def run(
        self,
        store: RecordStore,
        source_ids: Optional[Sequence[str]] = None,
        mode: SyncMode = SyncMode.incremental,
        deadline_seconds: Optional[float] = None,
        targets: Optional[Dict[str, int]] = None,
    ) -> SyncSummary:
        mode = SyncMode(mode)
        if deadline_seconds is None and settings.SYNC_DEADLINE_SECONDS > 0:
            deadline_seconds = settings.SYNC_DEADLINE_SECONDS
        deadline = self.clock() + deadline_seconds if deadline_seconds else None

        summary = SyncSummary(mode=mode, started_at=utcnow())
        sources = self._select_sources(store, source_ids)
        logger.info("Sync run started: mode=%s sources=%s", mode.value, len(sources))

        for source_id, source in sources:
            if source is None:
                summary.results.append(
                    SyncResult(source_id=source_id, status=SyncStatus.error, error="data source not found")
                )
                continue
            if deadline is not None and self.clock() >= deadline:
                summary.results.append(
                    SyncResult(
                        source_id=source.id,
                        status=SyncStatus.skipped,
                        name=source.name,
                        jurisdiction=(source.region or "").upper(),
                        error="deadline exceeded before start",
                    )
                )
                continue
            summary.results.append(self._sync_one(store, source, mode, deadline, targets))

        summary.finished_at = utcnow()
        logger.info(
            "Sync run finished: mode=%s total=%s success=%s failed=%s skipped=%s",
            mode.value, summary.total_sources, summary.success_count,
            summary.failure_count, summary.skipped_count,
        )
        return summary

    def sync_source(
        self,
        store: RecordStore,
        source_id: str,
        mode: SyncMode = SyncMode.incremental,
        target: Optional[int] = None,
    ) -> SyncResult:
        source = store.get_by_id(EntityKind.data_source, source_id)
        targets = {source.id: target} if target is not None else None
        return self._sync_one(store, source, SyncMode(mode), None, targets)

    def _sync_one(
        self,
        store: RecordStore,
        source: DataSource,
        mode: SyncMode,
        deadline: Optional[float],
        targets: Optional[Dict[str, int]],
    ) -> SyncResult:
        started = self.clock()
        result = SyncResult(
            source_id=source.id,
            status=SyncStatus.error,
            name=source.name,
            jurisdiction=(source.region or "").upper(),
        )
        try:
            spec = self._spec_for(source, targets)
            kind = EntityKind(source.entity_kind or EntityKind.legal_case.value)
            wait = self.lock_timeout
            if deadline is not None:
                wait = min(wait, max(0.0, deadline - self.clock()))
            with self.single_flight.hold(f"{kind.value}:{spec.upper}", timeout=wait) as acquired:
                if not acquired:
                    result.status = SyncStatus.skipped
                    result.error = f"reconciliation for {spec.upper} already in progress"
                    logger.warning("Skipping %s: %s", source.id, result.error)
                    return result
                outcome = self.engine.reconcile(
                    store, spec, kind=kind, mode=mode, deadline=deadline,
                    source_id=source.id, clock=self.clock,
                )
            result.records_affected = outcome.created
            result.previous_count = outcome.previous_count
            result.final_count = outcome.final_count
            if outcome.interrupted:
                result.error = f"deadline exceeded after {outcome.created} records"
                logger.warning("Sync of %s interrupted: %s", source.id, result.error)
                return result
            store.touch_last_sync(source.id)
            result.status = SyncStatus.success
            logger.info(
                "Synced %s (%s): %s new records", source.id, result.jurisdiction, outcome.created,
            )
        except ReconciliationError as exc:
            result.records_affected = exc.committed
            result.error = exc.message
            logger.error("Sync failed for %s after %s records: %s", source.id, exc.committed, exc.message)
        except HelixError as exc:
            result.error = exc.message
            logger.error("Sync failed for %s: %s", source.id, exc.message)
        except Exception as exc:
            result.error = str(exc)
            logger.exception("Sync crashed for %s", source.id)
        finally:
            result.duration_seconds = self.clock() - started
        return result


sync_orchestrator = SyncOrchestrator()
