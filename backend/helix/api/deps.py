# helix/api/deps.py

from typing import Any, Optional, Type

from fastapi import Depends, Header
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from helix.db.database import get_db
from helix.services.idempotency_service import get_idempotent_response
from helix.services.record_store import RecordStore

__all__ = ["get_db", "get_store", "get_idempotency_key", "replay", "serialize"]


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
) -> Optional[str]:
    key = (idempotency_key or "").strip()
    return key or None


def replay(key: Optional[str], db: Session) -> Optional[JSONResponse]:
    """Stored response for a repeated Idempotency-Key, if any."""
    cached = get_idempotent_response(key, db)
    if cached is None:
        return None
    status_code, body = cached
    return JSONResponse(body, status_code=status_code, headers={"Idempotent-Replayed": "true"})


def serialize(schema: Type[BaseModel], row: Any) -> Any:
    """ORM row -> camelCase JSON-ready dict"""
    return jsonable_encoder(schema.model_validate(row), by_alias=True)
