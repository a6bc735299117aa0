"""
Pydantic validation schemas

Responses are serialized in camelCase. Create/patch bodies accept camelCase
or snake_case; unknown keys are passed through to the normalization adapter,
which maps legacy spellings and drops the rest.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from helix.db.models import SyncMode


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CamelInput(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> Dict[str, Any]:
        """Fields that were actually sent, keyed by field name, plus extras."""
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Legal Case Schemas
# ============================================================================

class LegalCaseCreate(CamelInput):
    id: str = Field(..., min_length=1, max_length=100)
    case_number: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=500)
    court: str = Field(..., min_length=1, max_length=255)
    jurisdiction: str = Field(..., min_length=1, max_length=50)
    decision_date: Optional[datetime] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    document_url: Optional[str] = None
    impact_level: Optional[str] = None
    keywords: Optional[List[str]] = None


class LegalCaseResponse(CamelModel):
    id: str
    case_number: str
    title: str
    court: str
    jurisdiction: str
    decision_date: Optional[datetime] = None
    summary: str = ""
    content: str = ""
    document_url: Optional[str] = None
    impact_level: str
    keywords: List[str] = []
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Regulatory Update Schemas
# ============================================================================

class RegulatoryUpdateCreate(CamelInput):
    id: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=500)
    region: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    source_id: Optional[str] = None
    update_type: Optional[str] = None
    priority: Optional[str] = None
    published_at: Optional[datetime] = None
    device_classes: Optional[List[str]] = None
    content: Optional[str] = None


class RegulatoryUpdateResponse(CamelModel):
    id: str
    title: str
    description: str = ""
    source_id: Optional[str] = None
    region: str
    update_type: str
    priority: str
    published_at: Optional[datetime] = None
    created_at: datetime
    device_classes: List[str] = []
    content: Optional[str] = None


class RecentUpdatesResponse(BaseModel):
    data: List[RegulatoryUpdateResponse]


# ============================================================================
# Data Source Schemas
# ============================================================================

class DataSourceCreate(CamelInput):
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    region: str = Field(..., min_length=1, max_length=50)
    region_name: Optional[str] = None
    court: Optional[str] = None
    entity_kind: Optional[str] = None
    target_count: Optional[int] = Field(None, ge=0)
    source_type: Optional[str] = None
    endpoint: Optional[str] = None
    is_active: Optional[bool] = None


class DataSourcePatch(CamelInput):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    region: Optional[str] = Field(None, min_length=1, max_length=50)
    region_name: Optional[str] = None
    court: Optional[str] = None
    entity_kind: Optional[str] = None
    target_count: Optional[int] = Field(None, ge=0)
    source_type: Optional[str] = None
    endpoint: Optional[str] = None
    is_active: Optional[bool] = None
    last_sync_at: Optional[datetime] = Field(None, alias="lastSync")


class DataSourceResponse(CamelModel):
    id: str
    name: str
    region: str
    region_name: Optional[str] = None
    court: Optional[str] = None
    entity_kind: str
    target_count: int
    source_type: Optional[str] = None
    endpoint: Optional[str] = None
    is_active: bool
    last_sync_at: Optional[datetime] = Field(None, alias="lastSync")
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Sync Schemas
# ============================================================================

class SyncRequest(CamelModel):
    mode: SyncMode = SyncMode.incremental
    source_ids: Optional[List[str]] = None
    deadline_seconds: Optional[float] = Field(None, gt=0)
    targets: Optional[Dict[str, int]] = None


class SourceSyncRequest(CamelModel):
    mode: SyncMode = SyncMode.incremental
    target: Optional[int] = Field(None, ge=0)


class SyncStats(CamelModel):
    last_sync: Optional[datetime] = None
    active_sources: int
    total_sources: int
    new_updates: int
    running_syncs: int
    running_jurisdictions: List[str] = []


class DashboardStats(CamelModel):
    total_updates: int
    total_legal_cases: int
    total_data_sources: int
    active_data_sources: int
    recent_updates: int
    updates_by_priority: Dict[str, int]
    cases_by_impact: Dict[str, int]
    cases_by_jurisdiction: Dict[str, int]
