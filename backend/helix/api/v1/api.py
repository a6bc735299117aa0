"""
Main API router aggregator
"""
from fastapi import APIRouter

from helix.api.v1.endpoints import (
    dashboard,
    data_sources,
    health,
    legal_cases,
    regulatory_updates,
    sync,
)

api_router = APIRouter()

# Include routers
api_router.include_router(legal_cases.router, prefix="/legal-cases", tags=["Legal Cases"])
api_router.include_router(regulatory_updates.router, prefix="/regulatory-updates", tags=["Regulatory Updates"])
api_router.include_router(data_sources.router, prefix="/data-sources", tags=["Data Sources"])
api_router.include_router(sync.router, prefix="/sync", tags=["Sync"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
