"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from helix.db.database import Base
from helix.utils.helpers import utcnow


# ============================================================================
# Enums
# ============================================================================

class Priority(str, enum.Enum):
    """Regulatory update priority"""
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"
    unspecified = "unspecified"


class ImpactLevel(str, enum.Enum):
    """Legal case impact level"""
    high = "high"
    medium = "medium"
    low = "low"
    unspecified = "unspecified"


class EntityKind(str, enum.Enum):
    """Record kinds handled by the record store"""
    regulatory_update = "regulatory_update"
    legal_case = "legal_case"
    data_source = "data_source"


class SyncMode(str, enum.Enum):
    incremental = "incremental"
    rebuild = "rebuild"


class SyncStatus(str, enum.Enum):
    success = "success"
    error = "error"
    skipped = "skipped"


# ============================================================================
# Models
# ============================================================================

class RegulatoryUpdate(Base):
    """Regulatory update published by an authority"""
    __tablename__ = "regulatory_updates"

    id = Column(String(100), primary_key=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    source_id = Column(String(100), nullable=True, index=True)
    region = Column(String(50), nullable=False, index=True)
    update_type = Column(String(50), nullable=False, default="guidance")
    priority = Column(String(20), nullable=False, default=Priority.unspecified.value)
    published_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    device_classes = Column(JSON, nullable=False, default=list)
    content = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_regulatory_updates_region_published", "region", "published_at"),
    )


class LegalCase(Base):
    """Court decision relevant to medical devices"""
    __tablename__ = "legal_cases"

    id = Column(String(100), primary_key=True)
    case_number = Column(String(100), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    court = Column(String(255), nullable=False)
    jurisdiction = Column(String(50), nullable=False, index=True)
    decision_date = Column(DateTime, nullable=True)
    summary = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    document_url = Column(String(1000), nullable=True)
    impact_level = Column(String(20), nullable=False, default=ImpactLevel.unspecified.value)
    keywords = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class DataSource(Base):
    """External regulatory/legal data provider and its reconciliation target"""
    __tablename__ = "data_sources"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    region = Column(String(50), nullable=False, index=True)
    region_name = Column(String(255), nullable=True)
    court = Column(String(255), nullable=True)
    entity_kind = Column(String(50), nullable=False, default=EntityKind.legal_case.value)
    target_count = Column(Integer, nullable=False, default=0)
    source_type = Column(String(50), nullable=True)
    endpoint = Column(String(1000), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_sync_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class IdempotencyRecord(Base):
    """Stored response of a side-effecting request keyed by Idempotency-Key"""
    __tablename__ = "idempotency_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    idempotency_key = Column(String(255), nullable=False, unique=True)
    endpoint = Column(String(255), nullable=False, default="")
    status_code = Column(Integer, nullable=False)
    response_body = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)


MODEL_BY_KIND = {
    EntityKind.regulatory_update: RegulatoryUpdate,
    EntityKind.legal_case: LegalCase,
    EntityKind.data_source: DataSource,
}
