"""
Offline Mode & Sync Service.
Lets the farm manager record sales, expenses and stock moves in dead zones,
with automatic sync on reconnect.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import httpx

from ..core.notifications import NotificationCenter, notification_center
from ..models.base import SessionLocal
from .connectivity import ConnectivityMonitor, connectivity_monitor
from .farm_api import FarmAPIClient, is_api_path
from .pending_store import PendingItem, PendingStore, SQLPendingStore

logger = logging.getLogger(__name__)


class SyncSkipReason(str, Enum):
    IN_PROGRESS = "in_progress"
    EMPTY = "empty"
    OFFLINE = "offline"


@dataclass
class SubmitResult:
    success: bool
    offline: bool


@dataclass
class SyncResult:
    synced: int = 0
    remaining: int = 0
    halted: bool = False
    skipped: Optional[SyncSkipReason] = None


@dataclass
class OfflineStatus:
    is_online: bool
    pending_count: int
    is_syncing: bool


def pluralize_entries(count: int) -> str:
    return "entry" if count == 1 else "entries"


class OfflineSyncService:
    """
    Submit gateway and sync engine over an injected pending store.

    Writes go straight to the remote API when possible; anything that cannot be
    delivered is queued locally and drained oldest-first once connectivity returns.
    A drain pass stops at the first failed delivery so later writes never overtake
    an earlier stuck one.
    """

    def __init__(
        self,
        store: PendingStore,
        api_client: FarmAPIClient,
        monitor: ConnectivityMonitor,
        notifier: NotificationCenter = notification_center,
    ):
        self.store = store
        self.api_client = api_client
        self.monitor = monitor
        self.notifier = notifier
        self.is_syncing = False
        self.pending_count = 0  # refreshed by start() and after every store change
        self._unsubscribe = None
        self._sync_task: Optional[asyncio.Task] = None

    # ── Status ──────────────────────────────────────────────────────────────

    def refresh_pending_count(self) -> int:
        self.pending_count = self.store.count()
        return self.pending_count

    def status(self) -> OfflineStatus:
        return OfflineStatus(
            is_online=self.monitor.is_online,
            pending_count=self.pending_count,
            is_syncing=self.is_syncing,
        )

    def list_pending(self) -> List[PendingItem]:
        return self.store.list()

    def remove_pending(self, item_id: str) -> None:
        """Manually discard one queued write (no error if it is already gone)."""
        self.store.remove(item_id)
        self.refresh_pending_count()

    def clear_pending(self) -> int:
        cleared = self.store.clear()
        self.refresh_pending_count()
        if cleared:
            logger.info("Cleared %d pending %s", cleared, pluralize_entries(cleared))
        return cleared

    # ── Submit gateway ──────────────────────────────────────────────────────

    async def submit_or_queue(self, endpoint: str, data: Dict) -> SubmitResult:
        """
        Try an immediate write; on any failure queue it for later.
        Never reports failure: queuing counts as eventual success.
        An endpoint outside the farm API is never contacted, and the store refuses it
        along with payloads JSON cannot encode.
        """
        if not is_api_path(endpoint):
            logger.warning("Refusing write to %r: not a farm API path", endpoint)
        elif self.monitor.is_online:
            try:
                response = await self.api_client.post_json(endpoint, data)
                if response.is_success:
                    return SubmitResult(success=True, offline=False)
                logger.info("Immediate write to %s rejected (%s), queuing", endpoint, response.status_code)
            except httpx.HTTPError as exc:
                logger.info("Immediate write to %s failed, queuing: %s", endpoint, exc)
            except (ValueError, TypeError) as exc:
                logger.warning("Immediate write to %s not sent, payload is not valid JSON: %s", endpoint, exc)

        self.store.save(endpoint, data)
        self.refresh_pending_count()
        return SubmitResult(success=True, offline=True)

    # ── Sync engine ─────────────────────────────────────────────────────────

    async def sync_pending(self) -> SyncResult:
        """
        Deliver every pending item in creation order.
        Transport errors, non-2xx responses and items that cannot be sent
        (bad endpoint, payload with NaN/Infinity) all halt the pass and keep the item.
        """
        if self.is_syncing:
            return SyncResult(remaining=self.pending_count, skipped=SyncSkipReason.IN_PROGRESS)

        items = self.store.list()
        if not items:
            return SyncResult(skipped=SyncSkipReason.EMPTY)
        if not self.monitor.is_online:
            return SyncResult(remaining=len(items), skipped=SyncSkipReason.OFFLINE)

        self.is_syncing = True
        result = SyncResult()
        try:
            for item in items:
                try:
                    response = await self.api_client.post_json(item.endpoint, item.payload)
                except httpx.HTTPError as exc:
                    logger.warning("Sync halted at %s (%s): %s", item.id, item.endpoint, exc)
                    result.halted = True
                    break
                except (ValueError, TypeError) as exc:
                    logger.warning("Sync halted at %s (%s), item cannot be sent: %s", item.id, item.endpoint, exc)
                    result.halted = True
                    break

                if not response.is_success:
                    logger.warning(
                        "Sync halted at %s (%s): remote answered %s",
                        item.id, item.endpoint, response.status_code,
                    )
                    result.halted = True
                    break

                self.store.remove(item.id)
                result.synced += 1
        finally:
            result.remaining = self.refresh_pending_count()
            self.is_syncing = False

        if result.synced > 0:
            self.notifier.success(f"Synced {result.synced} pending {pluralize_entries(result.synced)}")
        return result

    # ── Auto-sync on reconnect ──────────────────────────────────────────────

    def start(self) -> None:
        """Begin watching connectivity; drains right away if already online with a backlog."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.monitor.subscribe(self._on_connectivity_change)
        self.refresh_pending_count()
        if self.monitor.is_online and self.pending_count > 0:
            self._schedule_sync()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._sync_task is not None:
            await self._sync_task
            self._sync_task = None

    def _on_connectivity_change(self, online: bool) -> None:
        if online and self.refresh_pending_count() > 0:
            self._schedule_sync()

    def _schedule_sync(self) -> None:
        if self._sync_task is not None and not self._sync_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, auto-sync deferred to next trigger")
            return
        self._sync_task = loop.create_task(self._run_scheduled_sync())

    async def _run_scheduled_sync(self) -> None:
        try:
            await self.sync_pending()
        except Exception:
            logger.exception("Automatic sync pass failed")


farm_api_client = FarmAPIClient()

offline_sync_service = OfflineSyncService(
    store=SQLPendingStore(SessionLocal),
    api_client=farm_api_client,
    monitor=connectivity_monitor,
)
