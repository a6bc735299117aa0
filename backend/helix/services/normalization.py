"""
Record normalization

One canonical snake_case shape per entity kind. Everything entering the
record store (API payloads, seed data, reconciliation output) and everything
the query layer reads back goes through ``normalize_record`` so field-name
variants never leak past this module.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping

from helix.db.models import EntityKind, ImpactLevel, Priority
from helix.utils.exceptions import ValidationError
from helix.utils.helpers import parse_dt, to_snake

FIELDS: Dict[EntityKind, tuple[str, ...]] = {
    EntityKind.regulatory_update: (
        "id", "title", "description", "source_id", "region", "update_type",
        "priority", "published_at", "created_at", "device_classes", "content",
    ),
    EntityKind.legal_case: (
        "id", "case_number", "title", "court", "jurisdiction", "decision_date",
        "summary", "content", "document_url", "impact_level", "keywords",
        "created_at", "updated_at",
    ),
    EntityKind.data_source: (
        "id", "name", "region", "region_name", "court", "entity_kind",
        "target_count", "source_type", "endpoint", "is_active", "last_sync_at",
        "created_at", "updated_at",
    ),
}

# Legacy and camelCase spellings seen in dashboard payloads
ALIASES: Dict[EntityKind, Dict[str, str]] = {
    EntityKind.regulatory_update: {
        "source": "source_id",
        "type": "update_type",
        "category": "update_type",
        "published_date": "published_at",
        "published": "published_at",
        "jurisdiction": "region",
    },
    EntityKind.legal_case: {
        "date": "decision_date",
        "url": "document_url",
        "impact": "impact_level",
    },
    EntityKind.data_source: {
        "last_sync": "last_sync_at",
        "jurisdiction": "region",
        "jurisdiction_name": "region_name",
        "authority": "court",
        "type": "source_type",
        "url": "endpoint",
        "active": "is_active",
    },
}

DATETIME_FIELDS = {"published_at", "created_at", "updated_at", "decision_date", "last_sync_at"}
LIST_FIELDS = {"device_classes", "keywords"}

PRIORITY_VALUES = {p.value for p in Priority} - {Priority.unspecified.value}
IMPACT_VALUES = {i.value for i in ImpactLevel} - {ImpactLevel.unspecified.value}


def normalize_priority(value: Any) -> str:
    v = str(value or "").strip().lower()
    return v if v in PRIORITY_VALUES else Priority.unspecified.value


def normalize_impact_level(value: Any) -> str:
    v = str(value or "").strip().lower()
    return v if v in IMPACT_VALUES else ImpactLevel.unspecified.value


def normalize_region(value: Any) -> str:
    return str(value or "").strip().upper()


def _as_list(field: str, value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("["):
            try:
                value = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise ValidationError(f"Invalid {field}", {field: str(exc)}) from exc
        else:
            value = [part.strip() for part in raw.split(",")]
    if not isinstance(value, Iterable):
        raise ValidationError(f"Invalid {field}", {field: "expected a list"})
    return [str(item).strip() for item in value if str(item).strip()]


def canonical_key(kind: EntityKind, key: str) -> str:
    snake = to_snake(key)
    return ALIASES[kind].get(snake, snake)


def normalize_record(kind: EntityKind, raw: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Map ``raw`` onto the canonical field set of ``kind``.

    Unknown keys are dropped. Enumerated fields fall back to ``unspecified``;
    date fields are parsed to naive UTC; list fields accept JSON strings or
    comma-separated text. With ``partial`` only the keys present are returned
    (PATCH semantics); otherwise enumerated fields are always filled.
    """
    kind = EntityKind(kind)
    allowed = FIELDS[kind]
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        field = canonical_key(kind, key)
        if field not in allowed:
            continue
        # the canonical spelling wins over an alias supplied alongside it
        if field in out and to_snake(key) != field:
            continue
        out[field] = value

    errors: Dict[str, str] = {}
    for field in DATETIME_FIELDS.intersection(out):
        try:
            out[field] = parse_dt(out[field])
        except (TypeError, ValueError) as exc:
            errors[field] = str(exc)
    if errors:
        raise ValidationError("Invalid date value", errors)

    for field in LIST_FIELDS.intersection(out):
        out[field] = _as_list(field, out[field])

    if kind == EntityKind.regulatory_update:
        if "priority" in out or not partial:
            out["priority"] = normalize_priority(out.get("priority"))
        if "region" in out:
            out["region"] = normalize_region(out["region"])
    elif kind == EntityKind.legal_case:
        if "impact_level" in out or not partial:
            out["impact_level"] = normalize_impact_level(out.get("impact_level"))
        if "jurisdiction" in out:
            out["jurisdiction"] = normalize_region(out["jurisdiction"])
    elif kind == EntityKind.data_source:
        if "region" in out:
            out["region"] = normalize_region(out["region"])
        if "entity_kind" in out and out["entity_kind"] is not None:
            try:
                out["entity_kind"] = EntityKind(to_snake(str(out["entity_kind"]))).value
            except ValueError as exc:
                raise ValidationError("Invalid entity kind", {"entity_kind": str(out["entity_kind"])}) from exc
        if "target_count" in out and out["target_count"] is not None:
            try:
                out["target_count"] = int(out["target_count"])
            except (TypeError, ValueError) as exc:
                raise ValidationError("Invalid target count", {"target_count": str(exc)}) from exc
            if out["target_count"] < 0:
                raise ValidationError("Invalid target count", {"target_count": "must be >= 0"})
    return out
