"""
Data source endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from helix.api.deps import get_db, get_idempotency_key, get_store, replay, serialize
from helix.db.models import DataSource, EntityKind
from helix.db.schemas import (
    DataSourceCreate,
    DataSourcePatch,
    DataSourceResponse,
    SourceSyncRequest,
)
from helix.services.idempotency_service import store_idempotent_response
from helix.services.record_store import RecordStore
from helix.services.sync_orchestrator import sync_orchestrator

router = APIRouter()


@router.get("", response_model=List[DataSourceResponse])
def list_data_sources(store: RecordStore = Depends(get_store)):
    return store.get_all(EntityKind.data_source, order_by=DataSource.id)


@router.get("/active", response_model=List[DataSourceResponse])
def list_active_data_sources(store: RecordStore = Depends(get_store)):
    return store.get_all(EntityKind.data_source, order_by=DataSource.id, is_active=True)


@router.get("/historical", response_model=List[DataSourceResponse])
def list_historical_data_sources(store: RecordStore = Depends(get_store)):
    """Sources that have completed at least one sync, most recently synced first."""
    return store.get_all(
        EntityKind.data_source,
        DataSource.last_sync_at.isnot(None),
        order_by=(DataSource.last_sync_at.desc(), DataSource.id),
    )


@router.get("/{source_id}", response_model=DataSourceResponse)
def get_data_source(source_id: str, store: RecordStore = Depends(get_store)):
    return store.get_by_id(EntityKind.data_source, source_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=DataSourceResponse)
def create_data_source(
    payload: DataSourceCreate,
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    store: RecordStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    cached = replay(idempotency_key, db)
    if cached is not None:
        return cached

    row = store.create(EntityKind.data_source, payload.to_payload())
    body = serialize(DataSourceResponse, row)
    store_idempotent_response(
        idempotency_key, status.HTTP_201_CREATED, body, db, endpoint="POST /api/data-sources",
    )
    return JSONResponse(body, status_code=status.HTTP_201_CREATED)


@router.patch("/{source_id}", response_model=DataSourceResponse)
def update_data_source(
    source_id: str,
    payload: DataSourcePatch,
    store: RecordStore = Depends(get_store),
):
    """
    Partial update. ``lastSync`` may only move forward.
    """
    return store.update(EntityKind.data_source, source_id, payload.to_payload())


@router.post("/{source_id}/sync")
def sync_data_source(
    source_id: str,
    request: Optional[SourceSyncRequest] = Body(None),
    store: RecordStore = Depends(get_store),
):
    """
    Reconcile a single source. Unknown id -> 404; a failed reconciliation is
    reported in the result body with status ``error``.
    """
    request = request or SourceSyncRequest()
    result = sync_orchestrator.sync_source(store, source_id, mode=request.mode, target=request.target)
    return result.to_dict()
