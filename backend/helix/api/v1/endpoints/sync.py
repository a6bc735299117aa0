"""
Sync endpoints

``POST /sync/all`` runs the orchestrator synchronously in the worker thread
and returns the aggregate summary once every source has been processed.
"""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from helix.api.deps import get_db, get_idempotency_key, get_store, replay
from helix.db.models import DataSource, EntityKind, RegulatoryUpdate
from helix.db.schemas import SyncRequest, SyncStats
from helix.services.idempotency_service import store_idempotent_response
from helix.services.record_store import RecordStore
from helix.services.sync_orchestrator import sync_orchestrator
from helix.utils.helpers import utcnow

router = APIRouter()

NEW_UPDATES_WINDOW = timedelta(days=7)


@router.post("/all")
def sync_all(
    request: Optional[SyncRequest] = Body(None),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    store: RecordStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """
    Reconcile every active source (or ``sourceIds`` in the given order).
    """
    cached = replay(idempotency_key, db)
    if cached is not None:
        return cached

    request = request or SyncRequest()
    summary = sync_orchestrator.run(
        store,
        source_ids=request.source_ids,
        mode=request.mode,
        deadline_seconds=request.deadline_seconds,
        targets=request.targets,
    )
    body = summary.to_dict()
    store_idempotent_response(idempotency_key, 200, body, db, endpoint="POST /api/sync/all")
    return body


@router.get("/stats", response_model=SyncStats)
def get_sync_stats(store: RecordStore = Depends(get_store)):
    active = store.count_where(EntityKind.data_source, is_active=True)
    total = store.count_where(EntityKind.data_source)
    last_sync = (
        store.db.query(func.max(DataSource.last_sync_at))
        .filter(DataSource.is_active.is_(True))
        .scalar()
    )
    cutoff = utcnow() - NEW_UPDATES_WINDOW
    new_updates = store.count_where(
        EntityKind.regulatory_update,
        RegulatoryUpdate.created_at >= cutoff,
    )
    running = sync_orchestrator.running()
    return SyncStats(
        last_sync=last_sync,
        active_sources=active,
        total_sources=total,
        new_updates=new_updates,
        running_syncs=len(running),
        running_jurisdictions=running,
    )
