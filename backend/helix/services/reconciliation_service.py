"""
Reconciliation engine

Brings the record count of one jurisdiction up to a target by inserting
placeholder records. Output is a pure function of the jurisdiction spec and
the sequence numbers already in the store, so reruns are reproducible:

  ids           {code}-case-{seq:03d} / {code}-update-{seq:03d}, code lower-cased,
                continuing after the highest existing sequence
  case numbers  {CODE}-{year}-{seq:04d}
  dates         spread over a fixed historical window
  impact level  round-robin high, medium, low  (priority: critical..low)

Incremental mode only ever adds. Rebuild mode clears the jurisdiction and
repopulates it to exactly the target, restarting at sequence 1.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

from helix.core.config import settings
from helix.db.models import EntityKind, ImpactLevel, Priority, SyncMode
from helix.services.record_store import RecordStore
from helix.utils.exceptions import ReconciliationError, StoreError, ValidationError

logger = logging.getLogger(__name__)

IMPACT_CYCLE = (ImpactLevel.high.value, ImpactLevel.medium.value, ImpactLevel.low.value)
PRIORITY_CYCLE = (
    Priority.critical.value,
    Priority.high.value,
    Priority.medium.value,
    Priority.low.value,
)
UPDATE_TYPE_CYCLE = ("guidance", "approval", "recall", "standard", "safety_notice")
DEVICE_CLASS_CYCLE = (["I"], ["IIa"], ["IIb"], ["III"], ["II", "III"])

# column holding the jurisdiction code, per kind
JURISDICTION_FIELD = {
    EntityKind.legal_case: "jurisdiction",
    EntityKind.regulatory_update: "region",
}
ID_INFIX = {
    EntityKind.legal_case: "case",
    EntityKind.regulatory_update: "update",
}


@dataclass(frozen=True)
class JurisdictionSpec:
    code: str
    name: str
    court: str
    desired: int

    def __post_init__(self) -> None:
        errors: Dict[str, str] = {}
        if not (self.code or "").strip():
            errors["code"] = "must not be empty"
        elif not re.fullmatch(r"[A-Za-z0-9_]+", self.code.strip()):
            errors["code"] = "letters, digits and underscores only"
        if not (self.court or "").strip():
            errors["court"] = "must not be empty"
        if not isinstance(self.desired, int) or self.desired < 0:
            errors["desired"] = "must be an integer >= 0"
        if errors:
            raise ValidationError("Invalid jurisdiction spec", errors)

    @property
    def upper(self) -> str:
        return self.code.strip().upper()

    @property
    def lower(self) -> str:
        return self.code.strip().lower()

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or self.upper


@dataclass
class ReconciliationOutcome:
    jurisdiction: str
    kind: EntityKind
    mode: SyncMode
    previous_count: int
    desired: int
    created: int = 0
    deleted: int = 0
    final_count: int = 0
    interrupted: bool = False
    created_ids: List[str] = field(default_factory=list)


class ReconciliationService:
    def __init__(
        self,
        batch_size: Optional[int] = None,
        history_start: Optional[date] = None,
        history_days: Optional[int] = None,
    ) -> None:
        self.batch_size = max(1, int(batch_size or settings.SYNC_BATCH_SIZE))
        self.history_start = history_start or settings.RECONCILE_HISTORY_START
        self.history_days = max(1, int(history_days or settings.RECONCILE_HISTORY_DAYS))

    # ------------------------------------------------------------- sequencing

    def id_prefix(self, spec: JurisdictionSpec, kind: EntityKind) -> str:
        return f"{spec.lower}-{ID_INFIX[kind]}-"

    def max_sequence(self, store: RecordStore, spec: JurisdictionSpec, kind: EntityKind) -> int:
        prefix = self.id_prefix(spec, kind)
        pattern = re.compile(re.escape(prefix) + r"(\d+)$")
        highest = 0
        for record_id in store.ids_with_prefix(kind, prefix):
            m = pattern.match(record_id)
            if m:
                highest = max(highest, int(m.group(1)))
        return highest

    def current_count(self, store: RecordStore, spec: JurisdictionSpec, kind: EntityKind) -> int:
        return store.count_where(kind, **{JURISDICTION_FIELD[kind]: spec.upper})

    # -------------------------------------------------------------- builders

    def _record_date(self, seq: int) -> datetime:
        offset = (seq * 37) % self.history_days
        day = self.history_start + timedelta(days=offset)
        return datetime(day.year, day.month, day.day)

    def build_record(self, spec: JurisdictionSpec, kind: EntityKind, seq: int) -> Dict[str, Any]:
        record_id = f"{self.id_prefix(spec, kind)}{seq:03d}"
        when = self._record_date(seq)
        if kind == EntityKind.legal_case:
            return {
                "id": record_id,
                "case_number": f"{spec.upper}-{when.year}-{seq:04d}",
                "title": f"{spec.display_name} Medical Device Case {seq}",
                "court": spec.court.strip(),
                "jurisdiction": spec.upper,
                "decision_date": when,
                "summary": f"Medical device regulatory case {seq} from {spec.display_name} jurisdiction",
                "content": (
                    f"This case addresses medical device regulation and compliance in "
                    f"{spec.display_name} before the {spec.court.strip()}."
                ),
                "document_url": f"https://legal-docs.example.com/{record_id}",
                "impact_level": IMPACT_CYCLE[(seq - 1) % len(IMPACT_CYCLE)],
                "keywords": ["medical device", "regulation", "compliance", spec.display_name.lower()],
            }
        update_type = UPDATE_TYPE_CYCLE[(seq - 1) % len(UPDATE_TYPE_CYCLE)]
        return {
            "id": record_id,
            "title": f"{spec.court.strip()} {update_type.replace('_', ' ')} {seq}",
            "description": f"Regulatory {update_type.replace('_', ' ')} {seq} for {spec.display_name}",
            "source_id": None,
            "region": spec.upper,
            "update_type": update_type,
            "priority": PRIORITY_CYCLE[(seq - 1) % len(PRIORITY_CYCLE)],
            "published_at": when,
            "device_classes": list(DEVICE_CLASS_CYCLE[(seq - 1) % len(DEVICE_CLASS_CYCLE)]),
            "content": None,
        }

    def plan(self, spec: JurisdictionSpec, kind: EntityKind, start_seq: int, count: int) -> Iterator[Dict[str, Any]]:
        for seq in range(start_seq, start_seq + count):
            yield self.build_record(spec, kind, seq)

    # ------------------------------------------------------------- reconcile

    def reconcile(
        self,
        store: RecordStore,
        spec: JurisdictionSpec,
        kind: EntityKind = EntityKind.legal_case,
        mode: SyncMode = SyncMode.incremental,
        deadline: Optional[float] = None,
        source_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> ReconciliationOutcome:
        """
        Close the gap between the store and ``spec.desired``.

        ``deadline`` is a ``clock()`` value; it is checked between batches so
        a write in flight always completes. Raises ``ReconciliationError``
        with the committed count when the store fails mid-run.
        """
        kind = EntityKind(kind)
        mode = SyncMode(mode)
        if kind not in JURISDICTION_FIELD:
            raise ValidationError("Unsupported entity kind", {"entity_kind": kind.value})

        previous = self.current_count(store, spec, kind)
        outcome = ReconciliationOutcome(
            jurisdiction=spec.upper,
            kind=kind,
            mode=mode,
            previous_count=previous,
            desired=spec.desired,
        )

        if mode == SyncMode.rebuild:
            outcome.deleted = store.delete_where(kind, **{JURISDICTION_FIELD[kind]: spec.upper})
            missing = spec.desired
            start_seq = 1
            logger.info(
                "Rebuild %s/%s: cleared %s records, repopulating %s",
                spec.upper, kind.value, outcome.deleted, missing,
            )
        else:
            missing = max(0, spec.desired - previous)
            start_seq = self.max_sequence(store, spec, kind) + 1 if missing else 1

        if missing == 0:
            outcome.final_count = previous if mode == SyncMode.incremental else 0
            return outcome

        batch: List[Dict[str, Any]] = []
        for record in self.plan(spec, kind, start_seq, missing):
            if source_id and kind == EntityKind.regulatory_update:
                record["source_id"] = source_id
            batch.append(record)
            if len(batch) >= self.batch_size:
                self._write(store, spec, kind, batch, outcome)
                batch = []
                if deadline is not None and clock() >= deadline and outcome.created < missing:
                    outcome.interrupted = True
                    break
        if batch and not outcome.interrupted:
            self._write(store, spec, kind, batch, outcome)

        outcome.final_count = (0 if mode == SyncMode.rebuild else previous) + outcome.created
        logger.info(
            "Reconciled %s/%s mode=%s previous=%s created=%s final=%s%s",
            spec.upper, kind.value, mode.value, previous, outcome.created,
            outcome.final_count, " (interrupted)" if outcome.interrupted else "",
        )
        return outcome

    def _write(
        self,
        store: RecordStore,
        spec: JurisdictionSpec,
        kind: EntityKind,
        batch: List[Dict[str, Any]],
        outcome: ReconciliationOutcome,
    ) -> None:
        try:
            store.create_many(kind, batch)
        except StoreError as exc:
            logger.error(
                "Reconciliation of %s/%s failed after %s committed records: %s",
                spec.upper, kind.value, outcome.created, exc,
            )
            raise ReconciliationError(
                f"Reconciliation of {spec.upper} failed after {outcome.created} records: {exc.message}",
                jurisdiction=spec.upper,
                committed=outcome.created,
                kind=kind.value,
            ) from exc
        outcome.created += len(batch)
        outcome.created_ids.extend(record["id"] for record in batch)


reconciliation_service = ReconciliationService()
