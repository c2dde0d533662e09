"""
User-facing notifications (the field UI's toast feed).
Every message is logged and kept in a bounded history the UI polls.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from .config import settings

logger = logging.getLogger(__name__)


class NotificationLevel:
    SUCCESS = "success"
    WARNING = "warning"


@dataclass
class Notification:
    level: str
    message: str
    created_at: datetime = field(default_factory=datetime.utcnow)


class NotificationCenter:
    def __init__(self, history: int = 50):
        self._feed: deque = deque(maxlen=history)

    def success(self, message: str) -> None:
        self._push(NotificationLevel.SUCCESS, message)

    def warning(self, message: str) -> None:
        self._push(NotificationLevel.WARNING, message)

    def recent(self) -> List[Notification]:
        """Return kept notifications, oldest first."""
        return list(self._feed)

    def clear(self) -> None:
        self._feed.clear()

    def _push(self, level: str, message: str) -> None:
        logger.info("[%s] %s", level, message)
        self._feed.append(Notification(level=level, message=message))


notification_center = NotificationCenter(history=settings.NOTIFICATION_HISTORY)
