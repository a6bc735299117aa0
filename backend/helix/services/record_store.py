"""
Record store

CRUD over regulatory updates, legal cases and data sources on a SQLAlchemy
session. Every payload passes through ``normalize_record`` first; every
persistence failure rolls the session back and surfaces as ``StoreError``
(``ConstraintError`` for duplicates).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from helix.db.models import MODEL_BY_KIND, DataSource, EntityKind
from helix.services.normalization import normalize_record
from helix.utils.exceptions import ConstraintError, NotFoundError, StoreError, ValidationError
from helix.utils.helpers import utcnow

logger = logging.getLogger(__name__)

REQUIRED: Dict[EntityKind, tuple[str, ...]] = {
    EntityKind.regulatory_update: ("id", "title", "region"),
    EntityKind.legal_case: ("id", "case_number", "title", "court", "jurisdiction"),
    EntityKind.data_source: ("id", "name", "region"),
}

IMMUTABLE = {"id", "created_at"}


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ reads

    def _model(self, kind: EntityKind):
        return MODEL_BY_KIND[EntityKind(kind)]

    def _filtered(self, kind: EntityKind, criteria: Sequence[Any], filters: Mapping[str, Any]):
        model = self._model(kind)
        query = self.db.query(model)
        for name, value in filters.items():
            column = getattr(model, name, None)
            if column is None:
                raise ValidationError(f"Unknown filter '{name}'", {name: "unknown field"})
            query = query.filter(column == value)
        if criteria:
            query = query.filter(*criteria)
        return query

    def get_all(self, kind: EntityKind, *criteria: Any, order_by: Any = None, limit: Optional[int] = None, **filters: Any) -> List[Any]:
        try:
            query = self._filtered(kind, criteria, filters)
            if isinstance(order_by, (list, tuple)):
                query = query.order_by(*order_by)
            elif order_by is not None:
                query = query.order_by(order_by)
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as exc:
            raise self._fail(kind, "get_all", exc) from exc

    def get_by_id(self, kind: EntityKind, record_id: str) -> Any:
        try:
            row = self.db.get(self._model(kind), record_id)
        except SQLAlchemyError as exc:
            raise self._fail(kind, "get_by_id", exc) from exc
        if row is None:
            raise NotFoundError(EntityKind(kind).value, record_id)
        return row

    def count_where(self, kind: EntityKind, *criteria: Any, **filters: Any) -> int:
        try:
            model = self._model(kind)
            query = self._filtered(kind, criteria, filters).with_entities(func.count(model.id))
            return int(query.scalar() or 0)
        except SQLAlchemyError as exc:
            raise self._fail(kind, "count_where", exc) from exc

    def ids_with_prefix(self, kind: EntityKind, prefix: str) -> List[str]:
        model = self._model(kind)
        try:
            rows = self.db.query(model.id).filter(model.id.like(f"{prefix}%")).all()
        except SQLAlchemyError as exc:
            raise self._fail(kind, "ids_with_prefix", exc) from exc
        return [row[0] for row in rows]

    def get_recent_updates(self, limit: int = 10) -> List[Any]:
        model = self._model(EntityKind.regulatory_update)
        try:
            return (
                self.db.query(model)
                .order_by(
                    func.coalesce(model.published_at, model.created_at).desc(),
                    model.id.asc(),
                )
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._fail(EntityKind.regulatory_update, "get_recent", exc) from exc

    # ----------------------------------------------------------------- writes

    def _build(self, kind: EntityKind, entity: Mapping[str, Any]) -> Any:
        values = normalize_record(kind, entity)
        values = self._drop_null_defaults(kind, values)
        missing = {
            name: "required"
            for name in REQUIRED[EntityKind(kind)]
            if values.get(name) in (None, "")
        }
        if missing:
            raise ValidationError("Missing required fields", missing)
        return self._model(kind)(**values)

    def create(self, kind: EntityKind, entity: Mapping[str, Any]) -> Any:
        row = self._build(kind, entity)
        try:
            if self.db.get(self._model(kind), row.id) is not None:
                raise ConstraintError(
                    f"{EntityKind(kind).value} {row.id} already exists",
                    kind=EntityKind(kind).value,
                    operation="create",
                )
            self.db.add(row)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintError(
                f"{EntityKind(kind).value} {row.id} violates a unique constraint",
                kind=EntityKind(kind).value,
                operation="create",
            ) from exc
        except SQLAlchemyError as exc:
            raise self._fail(kind, "create", exc) from exc
        self.db.refresh(row)
        return row

    def create_many(self, kind: EntityKind, entities: Iterable[Mapping[str, Any]]) -> int:
        """Insert a batch in one transaction; either all rows commit or none."""
        rows = [self._build(kind, entity) for entity in entities]
        if not rows:
            return 0
        try:
            self.db.add_all(rows)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintError(
                f"Batch of {len(rows)} {EntityKind(kind).value} rows violates a unique constraint",
                kind=EntityKind(kind).value,
                operation="create_many",
            ) from exc
        except SQLAlchemyError as exc:
            raise self._fail(kind, "create_many", exc) from exc
        return len(rows)

    def update(self, kind: EntityKind, record_id: str, patch: Mapping[str, Any]) -> Any:
        row = self.get_by_id(kind, record_id)
        values = normalize_record(kind, patch, partial=True)
        for name in IMMUTABLE.intersection(values):
            if values[name] != getattr(row, name):
                raise ValidationError(f"Field '{name}' cannot be changed", {name: "immutable"})
            values.pop(name)
        for name in REQUIRED[EntityKind(kind)]:
            if name in values and values[name] in (None, ""):
                raise ValidationError("Missing required fields", {name: "required"})
        self._reject_nulls(kind, values)
        if EntityKind(kind) == EntityKind.data_source and "last_sync_at" in values:
            current = row.last_sync_at
            if current is not None and (values["last_sync_at"] is None or values["last_sync_at"] < current):
                raise ValidationError(
                    "lastSync cannot move backwards",
                    {"last_sync_at": f"must be >= {current.isoformat()}"},
                )
        for name, value in values.items():
            setattr(row, name, value)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintError(
                f"{EntityKind(kind).value} {record_id} violates a database constraint",
                kind=EntityKind(kind).value,
                operation="update",
            ) from exc
        except SQLAlchemyError as exc:
            raise self._fail(kind, "update", exc) from exc
        self.db.refresh(row)
        return row

    def _not_null(self, kind: EntityKind) -> Dict[str, bool]:
        return {
            column.key: column.default is not None
            for column in self._model(kind).__table__.columns
            if not column.nullable and not column.primary_key
        }

    def _drop_null_defaults(self, kind: EntityKind, values: Dict[str, Any]) -> Dict[str, Any]:
        """An explicit null on a defaulted NOT NULL column means 'use the default' at create."""
        not_null = self._not_null(kind)
        return {
            name: value
            for name, value in values.items()
            if not (value is None and not_null.get(name, False))
        }

    def _reject_nulls(self, kind: EntityKind, values: Mapping[str, Any]) -> None:
        nulls = {
            name: "cannot be null"
            for name, value in values.items()
            if value is None and name in self._not_null(kind)
        }
        if nulls:
            raise ValidationError("Invalid null value", nulls)

    def delete_where(self, kind: EntityKind, **filters: Any) -> int:
        try:
            deleted = self._filtered(kind, (), filters).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(kind, "delete_where", exc) from exc
        return int(deleted or 0)

    def touch_last_sync(self, source_id: str, at: Optional[datetime] = None) -> DataSource:
        """Advance a data source's last-sync timestamp; never moves it backwards."""
        source = self.get_by_id(EntityKind.data_source, source_id)
        at = at or utcnow()
        if source.last_sync_at is None or at > source.last_sync_at:
            source.last_sync_at = at
            try:
                self.db.commit()
            except SQLAlchemyError as exc:
                raise self._fail(EntityKind.data_source, "touch_last_sync", exc) from exc
            self.db.refresh(source)
        return source

    def _fail(self, kind: EntityKind, operation: str, exc: Exception) -> StoreError:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after %s on %s", operation, EntityKind(kind).value)
        logger.error(
            "Store operation failed: kind=%s operation=%s error=%s",
            EntityKind(kind).value, operation, exc,
        )
        return StoreError(
            f"{operation} failed for {EntityKind(kind).value}: {exc}",
            kind=EntityKind(kind).value,
            operation=operation,
        )
