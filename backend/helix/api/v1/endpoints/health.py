"""
Health and readiness checks: verify database connectivity and report record
counts. An empty legal-case table marks the data check as degraded; the
service is still ready.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from helix.api.deps import get_db
from helix.core.logger import logger
from helix.db.models import EntityKind
from helix.services.record_store import RecordStore
from helix.utils.exceptions import StoreError

router = APIRouter()


def _check_database(db: Session) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        db.execute(text("SELECT 1"))
        return "ok", "Database reachable"
    except SQLAlchemyError as e:
        return "error", f"Database: {str(e)}"


def _check_records(db: Session) -> Dict[str, Any]:
    store = RecordStore(db)
    try:
        counts = {
            "legalCases": store.count_where(EntityKind.legal_case),
            "regulatoryUpdates": store.count_where(EntityKind.regulatory_update),
            "activeDataSources": store.count_where(EntityKind.data_source, is_active=True),
        }
    except StoreError as e:
        return {"status": "error", "detail": e.message}
    status = "degraded" if counts["legalCases"] == 0 else "ok"
    return {"status": status, **counts}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    status, detail = _check_database(db)
    checks: Dict[str, Any] = {"database": {"status": status, "detail": detail}}
    if status == "ok":
        checks["records"] = _check_records(db)
    body = {
        "status": "ready" if status == "ok" else "unavailable",
        "checks": checks,
    }
    if status != "ok":
        logger.error("Readiness check failed: %s", detail)
        return JSONResponse(body, status_code=503)
    return body
