"""
In-process change feed: subscribe by table (and optionally partner) and receive a generic
change event after every committed write. Events carry the record version so a
subscriber can skip refetches for versions it has already seen.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    record_id: str
    partner_id: Optional[str]
    version: int


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, partner_id: Optional[str], callback: Callable[[ChangeEvent], None]):
        self.feed = feed
        self.table = table
        self.partner_id = partner_id
        self.callback = callback

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.partner_id is None or self.partner_id == event.partner_id

    def unsubscribe(self) -> None:
        self.feed._remove(self)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None], partner_id: Optional[str] = None) -> Subscription:
        sub = Subscription(self, table, partner_id, callback)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver to matching subscribers; returns how many were notified."""
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        delivered = 0
        for sub in targets:
            try:
                sub.callback(event)
                delivered += 1
            except Exception:
                # A failing listener must not affect the committed write
                logger.exception("change_subscriber_failed", extra={"table": event.table, "record_id": event.record_id})
        return delivered


feed = ChangeFeed()
