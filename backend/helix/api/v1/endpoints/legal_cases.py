"""
Legal case endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from helix.api.deps import get_db, get_idempotency_key, get_store, replay, serialize
from helix.db.models import EntityKind, LegalCase
from helix.db.schemas import LegalCaseCreate, LegalCaseResponse
from helix.services.idempotency_service import store_idempotent_response
from helix.services.normalization import normalize_region
from helix.services.record_store import RecordStore

router = APIRouter()


def _list_cases(store: RecordStore, jurisdiction: Optional[str]) -> List[LegalCase]:
    filters = {}
    if jurisdiction and jurisdiction.lower() != "all":
        filters["jurisdiction"] = normalize_region(jurisdiction)
    return _ordered(store.get_all(EntityKind.legal_case, **filters))


def _ordered(rows: List[LegalCase]) -> List[LegalCase]:
    # decision date desc, undated last, ties by id
    dated = sorted((r for r in rows if r.decision_date), key=lambda r: r.id)
    dated.sort(key=lambda r: r.decision_date, reverse=True)
    undated = sorted((r for r in rows if not r.decision_date), key=lambda r: r.id)
    return dated + undated


@router.get("", response_model=List[LegalCaseResponse])
def list_legal_cases(
    jurisdiction: Optional[str] = Query(None, description="Jurisdiction code, e.g. US"),
    store: RecordStore = Depends(get_store),
):
    """
    All legal cases, newest decision first
    """
    return _list_cases(store, jurisdiction)


@router.get("/jurisdiction/{code}", response_model=List[LegalCaseResponse])
def list_legal_cases_by_jurisdiction(code: str, store: RecordStore = Depends(get_store)):
    return _list_cases(store, code)


@router.get("/{case_id}", response_model=LegalCaseResponse)
def get_legal_case(case_id: str, store: RecordStore = Depends(get_store)):
    return store.get_by_id(EntityKind.legal_case, case_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=LegalCaseResponse)
def create_legal_case(
    payload: LegalCaseCreate,
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
    store: RecordStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """
    Create one legal case. Duplicate id or case number -> 409.
    """
    cached = replay(idempotency_key, db)
    if cached is not None:
        return cached

    row = store.create(EntityKind.legal_case, payload.to_payload())
    body = serialize(LegalCaseResponse, row)
    store_idempotent_response(
        idempotency_key, status.HTTP_201_CREATED, body, db, endpoint="POST /api/legal-cases",
    )
    return JSONResponse(body, status_code=status.HTTP_201_CREATED)
