from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from helix.db.models import EntityKind, LegalCase
from helix.services.record_store import RecordStore
from helix.utils.exceptions import ConstraintError, NotFoundError, StoreError, ValidationError
from tests.helpers import case_payload, source_payload, update_payload


def test_create_and_get_round_trip(store: RecordStore) -> None:
    created = store.create(EntityKind.legal_case, case_payload("us-manual-001"))

    fetched = store.get_by_id(EntityKind.legal_case, "us-manual-001")

    assert fetched.id == created.id
    assert fetched.jurisdiction == "US"
    assert fetched.decision_date == datetime(2023, 5, 4)
    assert fetched.keywords == ["implant", "recall"]
    assert fetched.created_at is not None


def test_get_by_id_missing_raises_not_found(store: RecordStore) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        store.get_by_id(EntityKind.legal_case, "nope")

    assert excinfo.value.status_code == 404


def test_duplicate_id_raises_constraint_error(store: RecordStore) -> None:
    store.create(EntityKind.legal_case, case_payload("dup"))

    with pytest.raises(ConstraintError):
        store.create(EntityKind.legal_case, case_payload("dup", caseNumber="OTHER-1"))

    assert store.count_where(EntityKind.legal_case) == 1


def test_duplicate_case_number_raises_constraint_error(store: RecordStore) -> None:
    store.create(EntityKind.legal_case, case_payload("a", caseNumber="SAME-1"))

    with pytest.raises(ConstraintError):
        store.create(EntityKind.legal_case, case_payload("b", caseNumber="SAME-1"))

    # session is usable after the rollback
    store.create(EntityKind.legal_case, case_payload("c", caseNumber="SAME-2"))
    assert store.count_where(EntityKind.legal_case) == 2


def test_missing_required_fields_rejected(store: RecordStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        store.create(EntityKind.legal_case, {"id": "x", "title": "only a title"})

    assert set(excinfo.value.fields) == {"case_number", "court", "jurisdiction"}


def test_create_many_is_all_or_nothing(store: RecordStore) -> None:
    store.create(EntityKind.legal_case, case_payload("taken", caseNumber="TAKEN"))
    batch = [
        case_payload("fresh-1", caseNumber="F-1"),
        case_payload("fresh-2", caseNumber="TAKEN"),
    ]

    with pytest.raises(ConstraintError):
        store.create_many(EntityKind.legal_case, batch)

    assert store.count_where(EntityKind.legal_case) == 1


def test_get_all_and_count_with_filters(store: RecordStore) -> None:
    store.create(EntityKind.legal_case, case_payload("us-1", caseNumber="U1", jurisdiction="US"))
    store.create(EntityKind.legal_case, case_payload("de-1", caseNumber="D1", jurisdiction="DE"))
    store.create(EntityKind.legal_case, case_payload("de-2", caseNumber="D2", jurisdiction="de"))

    german = store.get_all(EntityKind.legal_case, order_by=LegalCase.id, jurisdiction="DE")

    assert [c.id for c in german] == ["de-1", "de-2"]
    assert store.count_where(EntityKind.legal_case, jurisdiction="US") == 1
    assert store.count_where(EntityKind.legal_case, LegalCase.id.like("de-%")) == 2


def test_unknown_filter_is_a_validation_error(store: RecordStore) -> None:
    with pytest.raises(ValidationError):
        store.get_all(EntityKind.legal_case, colour="blue")


def test_update_applies_partial_patch(store: RecordStore) -> None:
    store.create(EntityKind.data_source, source_payload("src", "US", 5))

    updated = store.update(EntityKind.data_source, "src", {"isActive": False, "name": "Renamed"})

    assert updated.is_active is False
    assert updated.name == "Renamed"
    assert updated.target_count == 5


def test_update_refuses_id_change_and_blank_required(store: RecordStore) -> None:
    store.create(EntityKind.data_source, source_payload("src", "US", 5))

    with pytest.raises(ValidationError):
        store.update(EntityKind.data_source, "src", {"id": "other"})
    with pytest.raises(ValidationError):
        store.update(EntityKind.data_source, "src", {"name": ""})


def test_update_missing_record_raises_not_found(store: RecordStore) -> None:
    with pytest.raises(NotFoundError):
        store.update(EntityKind.data_source, "ghost", {"name": "x"})


def test_last_sync_never_moves_backwards(store: RecordStore) -> None:
    store.create(EntityKind.data_source, source_payload("src", "US", 5))
    store.update(EntityKind.data_source, "src", {"lastSync": "2024-06-01T00:00:00Z"})

    with pytest.raises(ValidationError):
        store.update(EntityKind.data_source, "src", {"lastSync": "2024-01-01T00:00:00Z"})

    store.touch_last_sync("src", at=datetime(2023, 1, 1))
    assert store.get_by_id(EntityKind.data_source, "src").last_sync_at == datetime(2024, 6, 1)

    store.touch_last_sync("src", at=datetime(2025, 1, 1))
    assert store.get_by_id(EntityKind.data_source, "src").last_sync_at == datetime(2025, 1, 1)


def test_last_sync_cannot_be_cleared_once_set(store: RecordStore) -> None:
    store.create(EntityKind.data_source, source_payload("src", "US", 5))
    store.update(EntityKind.data_source, "src", {"lastSync": None})
    store.update(EntityKind.data_source, "src", {"lastSync": "2024-06-01T00:00:00Z"})

    with pytest.raises(ValidationError) as excinfo:
        store.update(EntityKind.data_source, "src", {"lastSync": None})

    assert "last_sync_at" in excinfo.value.fields
    assert store.get_by_id(EntityKind.data_source, "src").last_sync_at == datetime(2024, 6, 1)


def test_update_rejects_null_for_not_null_columns(store: RecordStore) -> None:
    store.create(EntityKind.data_source, source_payload("src", "US", 5))

    with pytest.raises(ValidationError) as excinfo:
        store.update(EntityKind.data_source, "src", {"isActive": None, "targetCount": None})

    assert excinfo.value.fields == {"is_active": "cannot be null", "target_count": "cannot be null"}
    source = store.get_by_id(EntityKind.data_source, "src")
    assert source.is_active is True
    assert source.target_count == 5


def test_create_treats_null_as_column_default(store: RecordStore) -> None:
    created = store.create(EntityKind.regulatory_update, update_payload("fda-x-001", description=None, deviceClasses=None))

    assert created.description == ""
    assert created.device_classes == []


def test_recent_updates_newest_first(store: RecordStore) -> None:
    store.create(EntityKind.regulatory_update, update_payload("old", publishedAt="2020-01-01"))
    store.create(EntityKind.regulatory_update, update_payload("new", publishedAt="2024-01-01"))
    store.create(EntityKind.regulatory_update, update_payload("mid", publishedAt="2022-01-01"))

    recent = store.get_recent_updates(2)

    assert [u.id for u in recent] == ["new", "mid"]


def test_delete_where_scopes_to_filter(store: RecordStore) -> None:
    store.create(EntityKind.legal_case, case_payload("us-1", caseNumber="U1", jurisdiction="US"))
    store.create(EntityKind.legal_case, case_payload("de-1", caseNumber="D1", jurisdiction="DE"))

    assert store.delete_where(EntityKind.legal_case, jurisdiction="US") == 1
    assert store.count_where(EntityKind.legal_case) == 1


def test_persistence_failure_surfaces_as_store_error(
    store: RecordStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_commit() -> None:
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store.db, "commit", broken_commit)

    with pytest.raises(StoreError) as excinfo:
        store.create(EntityKind.regulatory_update, update_payload("u1"))

    assert not isinstance(excinfo.value, ConstraintError)
    assert excinfo.value.operation == "create"
    assert excinfo.value.kind == "regulatory_update"
