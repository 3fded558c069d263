"""Sync management endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime

from app.api.deps import get_services
from app.models.base import get_db
from app.models import SyncLog
from app.models.sync_log import SyncSource, SyncStatus
from app.services.container import Services
from app.services.watermark import format_watermark

router = APIRouter(prefix="/api/sync", tags=["sync"])


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    repository: Optional[str] = None
    issue_number: Optional[int] = None
    action: Optional[str] = None
    status: SyncStatus
    source: SyncSource
    message: Optional[str] = None
    created_at: datetime


class WatermarkResponse(BaseModel):
    enabled: bool
    last_sync_time: Optional[str] = None
    since: str


@router.post("/trigger")
def trigger_sync(services: Services = Depends(get_services)):
    """Manually run a full reconciliation of every configured repository"""
    result = services.sync_service.sync_all()
    return result.as_dict()


@router.get("/logs", response_model=List[SyncLogResponse])
def list_sync_logs(
    limit: int = 100,
    repository: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List sync logs"""
    query = db.query(SyncLog).order_by(SyncLog.created_at.desc())
    if repository:
        query = query.filter(SyncLog.repository == repository)
    logs = query.limit(limit).all()
    return logs


@router.get("/watermark", response_model=WatermarkResponse)
def get_watermark(services: Services = Depends(get_services)):
    """Stored last sync time and the window start the next pass will use"""
    watermark = services.watermark
    last = watermark.read()
    return WatermarkResponse(
        enabled=watermark.enabled,
        last_sync_time=format_watermark(last) if last else None,
        since=format_watermark(watermark.since()),
    )
