from __future__ import annotations

from datetime import datetime

import pytest

from helix.db.models import EntityKind
from helix.services.normalization import (
    normalize_impact_level,
    normalize_priority,
    normalize_record,
)
from helix.utils.exceptions import ValidationError


def test_camel_and_snake_case_map_to_one_shape() -> None:
    camel = normalize_record(
        EntityKind.legal_case,
        {"id": "x", "caseNumber": "A-1", "impactLevel": "HIGH", "decisionDate": "2024-01-02"},
    )
    snake = normalize_record(
        EntityKind.legal_case,
        {"id": "x", "case_number": "A-1", "impact_level": "high", "decision_date": "2024-01-02"},
    )

    assert camel == snake
    assert camel["decision_date"] == datetime(2024, 1, 2)
    assert camel["impact_level"] == "high"


def test_unknown_keys_are_dropped() -> None:
    out = normalize_record(EntityKind.regulatory_update, {"id": "u", "bogus": 1, "riskScore": 5})

    assert "bogus" not in out
    assert "risk_score" not in out


def test_legacy_aliases_are_mapped() -> None:
    out = normalize_record(
        EntityKind.data_source,
        {"id": "s", "lastSync": "2024-06-01T10:00:00Z", "active": False, "jurisdiction": "de"},
    )

    assert out["last_sync_at"] == datetime(2024, 6, 1, 10, 0)
    assert out["is_active"] is False
    assert out["region"] == "DE"


def test_canonical_key_wins_over_alias() -> None:
    out = normalize_record(
        EntityKind.regulatory_update,
        {"publishedAt": "2024-02-02", "published_date": "2020-01-01"},
    )
    assert out["published_at"] == datetime(2024, 2, 2)

    out = normalize_record(
        EntityKind.regulatory_update,
        {"published_date": "2020-01-01", "publishedAt": "2024-02-02"},
    )
    assert out["published_at"] == datetime(2024, 2, 2)


@pytest.mark.parametrize("value", [None, "", "urgent", "HIGHEST", 3])
def test_unknown_priority_is_unspecified(value: object) -> None:
    assert normalize_priority(value) == "unspecified"


def test_impact_level_is_never_coerced_to_a_real_level() -> None:
    assert normalize_impact_level("Medium ") == "medium"
    assert normalize_impact_level("severe") == "unspecified"

    out = normalize_record(EntityKind.legal_case, {"id": "c"})
    assert out["impact_level"] == "unspecified"


def test_partial_leaves_missing_enums_alone() -> None:
    out = normalize_record(EntityKind.regulatory_update, {"title": "t"}, partial=True)

    assert out == {"title": "t"}


def test_list_fields_accept_json_and_csv() -> None:
    out = normalize_record(EntityKind.legal_case, {"keywords": "implant, recall ,"})
    assert out["keywords"] == ["implant", "recall"]

    out = normalize_record(EntityKind.regulatory_update, {"deviceClasses": '["IIa", "III"]'})
    assert out["device_classes"] == ["IIa", "III"]


def test_bad_date_raises_validation_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize_record(EntityKind.legal_case, {"decisionDate": "yesterday"})

    assert "decision_date" in excinfo.value.fields


def test_data_source_target_must_be_non_negative() -> None:
    with pytest.raises(ValidationError):
        normalize_record(EntityKind.data_source, {"targetCount": -1})
    with pytest.raises(ValidationError):
        normalize_record(EntityKind.data_source, {"entityKind": "court_ruling"})

    out = normalize_record(EntityKind.data_source, {"entityKind": "legalCase", "targetCount": "7"})
    assert out["entity_kind"] == "legal_case"
    assert out["target_count"] == 7
