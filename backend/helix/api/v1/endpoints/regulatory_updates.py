"""
Regulatory update endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from helix.api.deps import get_db, get_idempotency_key, get_store, replay, serialize
from helix.db.models import EntityKind, RegulatoryUpdate
from helix.db.schemas import (
    RecentUpdatesResponse,
    RegulatoryUpdateCreate,
    RegulatoryUpdateResponse,
)
from helix.services.idempotency_service import store_idempotent_response
from helix.services.normalization import normalize_priority, normalize_region
from helix.services.record_store import RecordStore

router = APIRouter()


@router.get("", response_model=List[RegulatoryUpdateResponse])
def list_regulatory_updates(
    region: Optional[str] = Query(None, description="Region code, e.g. EU"),
    priority: Optional[str] = Query(None, description="critical/high/medium/low/unspecified"),
    store: RecordStore = Depends(get_store),
):
    filters = {}
    if region and region.lower() != "all":
        filters["region"] = normalize_region(region)
    if priority and priority.lower() != "all":
        filters["priority"] = normalize_priority(priority)
    return store.get_all(
        EntityKind.regulatory_update,
        order_by=func.coalesce(RegulatoryUpdate.published_at, RegulatoryUpdate.created_at).desc(),
        **filters,
    )


@router.get("/recent", response_model=RecentUpdatesResponse)
def get_recent_updates(
    limit: int = Query(10, ge=1, le=100),
    store: RecordStore = Depends(get_store),
):
    """
    The ``limit`` most recently published updates, wrapped as ``{data: [...]}``
    """
    return {"data": store.get_recent_updates(limit)}


@router.get("/{update_id}", response_model=RegulatoryUpdateResponse)
def get_regulatory_update(update_id: str, store: RecordStore = Depends(get_store)):
    return store.get_by_id(EntityKind.regulatory_update, update_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=RegulatoryUpdateResponse)
def create_regulatory_update(
    payload: RegulatoryUpdateCreate,
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    store: RecordStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    cached = replay(idempotency_key, db)
    if cached is not None:
        return cached

    row = store.create(EntityKind.regulatory_update, payload.to_payload())
    body = serialize(RegulatoryUpdateResponse, row)
    store_idempotent_response(
        idempotency_key, status.HTTP_201_CREATED, body, db, endpoint="POST /api/regulatory-updates",
    )
    return JSONResponse(body, status_code=status.HTTP_201_CREATED)
