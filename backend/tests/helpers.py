from __future__ import annotations

from typing import Any

from helix.db.models import EntityKind


def case_payload(record_id: str = "us-manual-001", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": record_id,
        "caseNumber": f"CN-{record_id}",
        "title": "Smith v. Device Corp",
        "court": "U.S. District Court",
        "jurisdiction": "us",
        "decisionDate": "2023-05-04",
        "impactLevel": "high",
        "keywords": ["implant", "recall"],
    }
    payload.update(overrides)
    return payload


def update_payload(record_id: str = "upd-001", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": record_id,
        "title": "Cybersecurity guidance",
        "description": "Premarket cybersecurity expectations",
        "region": "us",
        "updateType": "guidance",
        "priority": "high",
        "publishedAt": "2024-03-01T12:00:00Z",
    }
    payload.update(overrides)
    return payload


def source_payload(
    record_id: str,
    region: str,
    target: int,
    kind: EntityKind = EntityKind.legal_case,
    **overrides: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": record_id,
        "name": f"{region} source",
        "region": region,
        "region_name": region,
        "court": f"{region} Court",
        "entity_kind": kind.value,
        "target_count": target,
        "is_active": True,
    }
    payload.update(overrides)
    return payload
