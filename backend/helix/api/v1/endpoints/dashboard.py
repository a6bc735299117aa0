"""
Dashboard statistics endpoints for webapp
"""
from datetime import timedelta
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from helix.api.deps import get_db, get_store
from helix.db import schemas
from helix.db.models import EntityKind, ImpactLevel, LegalCase, Priority, RegulatoryUpdate
from helix.services.record_store import RecordStore
from helix.utils.helpers import utcnow

router = APIRouter()


def _grouped(db: Session, column, keys) -> Dict[str, int]:
    counts = {key: 0 for key in keys}
    for value, count in db.query(column, func.count()).group_by(column).all():
        counts[value] = counts.get(value, 0) + count
    return counts


@router.get("/stats", response_model=schemas.DashboardStats)
def get_dashboard_stats(
    store: RecordStore = Depends(get_store),
    db: Session = Depends(get_db),
):
    """
    Get comprehensive dashboard statistics
    """
    thirty_days_ago = utcnow() - timedelta(days=30)
    recent_updates = store.count_where(
        EntityKind.regulatory_update,
        func.coalesce(RegulatoryUpdate.published_at, RegulatoryUpdate.created_at) > thirty_days_ago,
    )

    # Cases by jurisdiction
    cases_by_jurisdiction = dict(
        db.query(LegalCase.jurisdiction, func.count(LegalCase.id))
        .group_by(LegalCase.jurisdiction)
        .all()
    )

    return schemas.DashboardStats(
        total_updates=store.count_where(EntityKind.regulatory_update),
        total_legal_cases=store.count_where(EntityKind.legal_case),
        total_data_sources=store.count_where(EntityKind.data_source),
        active_data_sources=store.count_where(EntityKind.data_source, is_active=True),
        recent_updates=recent_updates,
        updates_by_priority=_grouped(db, RegulatoryUpdate.priority, [p.value for p in Priority]),
        cases_by_impact=_grouped(db, LegalCase.impact_level, [i.value for i in ImpactLevel]),
        cases_by_jurisdiction=cases_by_jurisdiction,
    )
