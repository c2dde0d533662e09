"""
Pending Write Store.
Durable key/value persistence of writes that could not be delivered yet.
Each item lives under its own key (``farm_pending_<ms>_<random>``); listing is a prefix scan.
Storage failures degrade to no-ops: callers must never depend on persistence succeeding.
"""
import json
import logging
import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.local_storage import LocalStorageEntry
from .farm_api import is_api_path

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class PendingItem:
    """A queued write awaiting delivery. Never mutated after creation."""
    id: str
    endpoint: str
    payload: Dict
    created_at: str  # ISO-8601 UTC

    def to_json(self) -> str:
        """Raises ValueError for NaN/Infinity and TypeError for values JSON cannot hold."""
        return json.dumps({
            "id": self.id,
            "endpoint": self.endpoint,
            "data": self.payload,
            "createdAt": self.created_at,
        }, allow_nan=False)

    @classmethod
    def from_json(cls, raw: str) -> "PendingItem":
        """Raises ValueError/KeyError/TypeError for malformed records."""
        record = json.loads(raw)
        if not isinstance(record["data"], dict):
            raise TypeError("payload must be an object")
        if not isinstance(record["createdAt"], str):
            raise TypeError("createdAt must be a string")
        # Validate the timestamp up front so sorting never trips on it
        _parse_timestamp(record["createdAt"])
        return cls(
            id=str(record["id"]),
            endpoint=str(record["endpoint"]),
            payload=record["data"],
            created_at=record["createdAt"],
        )


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_pending_id(prefix: str) -> str:
    """Time-based id with a random base36 suffix."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=11))
    return f"{prefix}{int(time.time() * 1000)}_{suffix}"


def _sorted_items(items: List[PendingItem]) -> List[PendingItem]:
    return sorted(items, key=lambda item: _parse_timestamp(item.created_at))


class PendingStore:
    """Interface shared by every pending-write backend."""

    def _accepts(self, endpoint: str) -> bool:
        if not is_api_path(endpoint):
            logger.warning("Write to %r not persisted: not a farm API path", endpoint)
            return False
        return True

    def save(self, endpoint: str, payload: Dict) -> Optional[str]:
        raise NotImplementedError

    def list(self) -> List[PendingItem]:
        raise NotImplementedError

    def remove(self, item_id: str) -> None:
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list())

    def clear(self) -> int:
        """Remove every pending item; returns how many were removed."""
        items = self.list()
        for item in items:
            self.remove(item.id)
        return len(items)


class InMemoryPendingStore(PendingStore):
    """
    Process-local store with the same record layout as the durable one.
    Raw values are kept as JSON strings so corrupt-record handling matches.
    """

    def __init__(self, prefix: str = settings.PENDING_KEY_PREFIX):
        self.prefix = prefix
        self.records: Dict[str, str] = {}

    def save(self, endpoint: str, payload: Dict) -> Optional[str]:
        if not self._accepts(endpoint):
            return None
        item = PendingItem(
            id=self._unique_id(),
            endpoint=endpoint,
            payload=dict(payload),
            created_at=_utc_now_iso(),
        )
        try:
            self.records[item.id] = item.to_json()
        except (ValueError, TypeError) as exc:
            logger.warning("Write to %s not persisted, payload is not valid JSON: %s", endpoint, exc)
            return None
        return item.id

    def list(self) -> List[PendingItem]:
        items = []
        for key, raw in self.records.items():
            if not key.startswith(self.prefix):
                continue
            try:
                items.append(PendingItem.from_json(raw))
            except (ValueError, KeyError, TypeError) as exc:
                logger.debug("Skipping corrupt pending record %s: %s", key, exc)
        return _sorted_items(items)

    def remove(self, item_id: str) -> None:
        if not item_id.startswith(self.prefix):
            return
        self.records.pop(item_id, None)

    def _unique_id(self) -> str:
        item_id = new_pending_id(self.prefix)
        while item_id in self.records:
            item_id = new_pending_id(self.prefix)
        return item_id


class SQLPendingStore(PendingStore):
    """
    Durable store on the device-local ``local_storage`` table.
    ``session_factory=None`` means no persistent storage is available in this context.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]],
        prefix: str = settings.PENDING_KEY_PREFIX,
    ):
        self.session_factory = session_factory
        self.prefix = prefix

    @property
    def available(self) -> bool:
        return self.session_factory is not None

    def save(self, endpoint: str, payload: Dict) -> Optional[str]:
        if not self.available:
            return None
        if not self._accepts(endpoint):
            return None
        db = self.session_factory()
        try:
            item_id = new_pending_id(self.prefix)
            while db.get(LocalStorageEntry, item_id) is not None:
                item_id = new_pending_id(self.prefix)
            item = PendingItem(
                id=item_id,
                endpoint=endpoint,
                payload=dict(payload),
                created_at=_utc_now_iso(),
            )
            db.add(LocalStorageEntry(key=item.id, value=item.to_json()))
            db.commit()
            return item.id
        except (ValueError, TypeError) as exc:
            logger.warning("Write to %s not persisted, payload is not valid JSON: %s", endpoint, exc)
            return None
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Pending store unavailable, write to %s not persisted: %s", endpoint, exc)
            return None
        finally:
            db.close()

    def list(self) -> List[PendingItem]:
        if not self.available:
            return []
        db = self.session_factory()
        try:
            rows = (
                db.query(LocalStorageEntry)
                .filter(LocalStorageEntry.key.startswith(self.prefix, autoescape=True))
                .all()
            )
            items = []
            for row in rows:
                try:
                    items.append(PendingItem.from_json(row.value))
                except (ValueError, KeyError, TypeError) as exc:
                    logger.debug("Skipping corrupt pending record %s: %s", row.key, exc)
            return _sorted_items(items)
        except SQLAlchemyError as exc:
            logger.warning("Pending store unavailable, listing nothing: %s", exc)
            return []
        finally:
            db.close()

    def remove(self, item_id: str) -> None:
        if not self.available or not item_id.startswith(self.prefix):
            return
        db = self.session_factory()
        try:
            db.query(LocalStorageEntry).filter(LocalStorageEntry.key == item_id).delete()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Pending store unavailable, could not remove %s: %s", item_id, exc)
        finally:
            db.close()
