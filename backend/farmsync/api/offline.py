"""Offline queue API: banner status, submit-or-queue, manual sync, connectivity signal, pending list."""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator

from ..core.notifications import NotificationCenter, notification_center
from ..services.farm_api import is_api_path
from ..services.offline_sync import (
    OfflineStatus,
    OfflineSyncService,
    offline_sync_service,
    pluralize_entries,
)

router = APIRouter(prefix="/offline", tags=["offline"])


def _all_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_all_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_all_finite(v) for v in value)
    return True


def get_offline_sync_service() -> OfflineSyncService:
    return offline_sync_service


def get_notification_center() -> NotificationCenter:
    return notification_center


# ── Request / Response schemas ──────────────────────────────────────────────

class SubmitRequest(BaseModel):
    endpoint: str
    data: Dict[str, Any]

    @field_validator("endpoint")
    @classmethod
    def endpoint_is_api_path(cls, v: str) -> str:
        if not is_api_path(v):
            raise ValueError("endpoint must be a path on the farm API, e.g. /api/farm/sales")
        return v

    @field_validator("data")
    @classmethod
    def data_is_finite(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not _all_finite(v):
            raise ValueError("data must not contain NaN or Infinity")
        return v


class SubmitResponse(BaseModel):
    success: bool
    offline: bool


class SyncResponse(BaseModel):
    synced: int
    remaining: int
    halted: bool
    skipped: Optional[str]


class ConnectivityRequest(BaseModel):
    online: bool


class StatusResponse(BaseModel):
    is_online: bool
    pending_count: int
    is_syncing: bool
    banner: Optional[str]


class PendingItemResponse(BaseModel):
    id: str
    endpoint: str
    data: Dict[str, Any]
    created_at: str


class ClearResponse(BaseModel):
    cleared: int


class NotificationResponse(BaseModel):
    level: str
    message: str
    created_at: datetime


def banner_text(state: OfflineStatus) -> Optional[str]:
    """Text of the field UI's offline banner; None when nothing needs showing."""
    if state.is_online and state.pending_count == 0:
        return None
    if not state.is_online:
        text = "Offline — data saved locally"
        if state.pending_count > 0:
            text += f" ({state.pending_count} pending)"
        return text
    if state.is_syncing:
        return f"Syncing ({state.pending_count} remaining)..."
    return f"{state.pending_count} pending {pluralize_entries(state.pending_count)} to sync"


def _status_response(service: OfflineSyncService) -> StatusResponse:
    state = service.status()
    return StatusResponse(
        is_online=state.is_online,
        pending_count=state.pending_count,
        is_syncing=state.is_syncing,
        banner=banner_text(state),
    )


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.get("/status", response_model=StatusResponse)
def get_status(service: OfflineSyncService = Depends(get_offline_sync_service)):
    return _status_response(service)


@router.post("/submit", response_model=SubmitResponse)
async def submit(req: SubmitRequest, service: OfflineSyncService = Depends(get_offline_sync_service)):
    """Write to the remote farm API, or queue locally when that is not possible."""
    result = await service.submit_or_queue(req.endpoint, req.data)
    return SubmitResponse(success=result.success, offline=result.offline)


@router.post("/sync", response_model=SyncResponse)
async def sync_now(service: OfflineSyncService = Depends(get_offline_sync_service)):
    """Run one drain pass now. Skipped when offline, empty, or already syncing."""
    result = await service.sync_pending()
    return SyncResponse(
        synced=result.synced,
        remaining=result.remaining,
        halted=result.halted,
        skipped=result.skipped.value if result.skipped else None,
    )


@router.post("/connectivity", response_model=StatusResponse)
async def report_connectivity(
    req: ConnectivityRequest,
    service: OfflineSyncService = Depends(get_offline_sync_service),
):
    """Platform connectivity signal. Going online with a backlog schedules a sync pass."""
    service.monitor.set_online(req.online)
    return _status_response(service)


@router.get("/pending", response_model=List[PendingItemResponse])
def list_pending(service: OfflineSyncService = Depends(get_offline_sync_service)):
    return [
        PendingItemResponse(id=item.id, endpoint=item.endpoint, data=item.payload, created_at=item.created_at)
        for item in service.list_pending()
    ]


@router.delete("/pending/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_pending(item_id: str, service: OfflineSyncService = Depends(get_offline_sync_service)):
    """Discard a queued write. Removing an unknown id is not an error."""
    service.remove_pending(item_id)


@router.delete("/pending", response_model=ClearResponse)
def clear_pending(service: OfflineSyncService = Depends(get_offline_sync_service)):
    return ClearResponse(cleared=service.clear_pending())


@router.get("/notifications", response_model=List[NotificationResponse])
def list_notifications(notifier: NotificationCenter = Depends(get_notification_center)):
    return [
        NotificationResponse(level=n.level, message=n.message, created_at=n.created_at)
        for n in notifier.recent()
    ]


@router.delete("/notifications", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_notifications(notifier: NotificationCenter = Depends(get_notification_center)):
    notifier.clear()
