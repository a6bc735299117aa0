"""
Idempotency Service
===================
Prevents duplicate side-effecting operations when the dashboard (or the
fetch client) retries a POST after a network failure.

Usage in an endpoint:
    cached = get_idempotent_response(key, db)
    if cached:
        status_code, body = cached
        return JSONResponse(body, status_code=status_code)

    # ... do the real work ...
    result = do_the_work()

    store_idempotent_response(key, 201, result, db, endpoint="POST /api/...")
    return result
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from helix.core.config import settings
from helix.db.models import IdempotencyRecord
from helix.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def get_idempotent_response(key: Optional[str], db: Session) -> Optional[tuple[int, Any]]:
    """
    Return (status_code, response_body) if a non-expired record exists for
    this key, otherwise None.
    """
    if not key:
        return None

    row: Optional[IdempotencyRecord] = (
        db.query(IdempotencyRecord)
        .filter(
            IdempotencyRecord.idempotency_key == key,
            IdempotencyRecord.expires_at > utcnow(),
        )
        .first()
    )

    if row is None:
        return None

    logger.info("idempotency_hit key=%s endpoint=%s", key, row.endpoint)
    return (row.status_code, row.response_body)


def store_idempotent_response(
    key: Optional[str],
    status_code: int,
    response_body: Any,
    db: Session,
    endpoint: str = "",
    ttl_hours: Optional[int] = None,
) -> None:
    """
    Persist the result of a side-effecting operation.
    On a duplicate key the first writer wins and the conflict is ignored.
    """
    if not key:
        return

    now = utcnow()
    # an expired row with the same key would block the insert
    db.query(IdempotencyRecord).filter(
        IdempotencyRecord.idempotency_key == key,
        IdempotencyRecord.expires_at <= now,
    ).delete(synchronize_session=False)

    row = IdempotencyRecord(
        idempotency_key=key,
        endpoint=endpoint,
        status_code=status_code,
        response_body=response_body,
        created_at=now,
        expires_at=now + timedelta(hours=ttl_hours or settings.IDEMPOTENCY_TTL_HOURS),
    )
    try:
        db.add(row)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("idempotency_duplicate_ignored key=%s", key)


def delete_expired_idempotency_records(db: Session) -> int:
    """Sweep expired rows. Called by a periodic background job."""
    deleted = (
        db.query(IdempotencyRecord)
        .filter(IdempotencyRecord.expires_at < utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
