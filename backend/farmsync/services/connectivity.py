"""
Connectivity Monitor.
Tracks whether the device believes it is online and notifies observers of transitions.
Purely event-driven: the platform pushes "became online" / "became offline" via set_online().
"""
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List

from ..core.notifications import NotificationCenter, notification_center
from ..core.config import settings

logger = logging.getLogger(__name__)

ONLINE_MESSAGE = "Back online"
OFFLINE_MESSAGE = "You are offline — data will be saved locally"

ConnectivityObserver = Callable[[bool], None]


class ConnectivityMonitor:
    def __init__(self, initial_online: bool = True, notifier: NotificationCenter = notification_center):
        self._online = initial_online
        self._notifier = notifier
        self._observers: List[ConnectivityObserver] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Apply a platform connectivity signal. Repeated signals for the current state are ignored."""
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")

        if online:
            self._notifier.success(ONLINE_MESSAGE)
        else:
            self._notifier.warning(OFFLINE_MESSAGE)

        for observer in list(self._observers):
            observer(online)

    def subscribe(self, observer: ConnectivityObserver) -> Callable[[], None]:
        """Register an observer; returns the matching unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    @contextmanager
    def subscription(self, observer: ConnectivityObserver) -> Iterator[None]:
        unsubscribe = self.subscribe(observer)
        try:
            yield
        finally:
            unsubscribe()


connectivity_monitor = ConnectivityMonitor(initial_online=settings.START_ONLINE)
