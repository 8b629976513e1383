from __future__ import annotations

import hashlib
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Set, Union

from .notifications import Notification
from .schema import AlertKey

logger = logging.getLogger(__name__)

KeyLike = Union[AlertKey, str]

DIGEST_SEPARATOR = "#"
DIGEST_LENGTH = 12


class DismissalBackend(Protocol):
    """Persistence boundary: any local or remote key set with these two calls."""

    def get(self, keys: Iterable[str]) -> Set[str]:
        ...

    def put(self, key: str) -> None:
        ...


class InMemoryDismissalBackend:
    """Process-local backend. Writes are serialized; last writer wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dismissed: Dict[str, datetime] = {}

    def get(self, keys: Iterable[str]) -> Set[str]:
        wanted = set(keys)
        with self._lock:
            return {k for k in wanted if k in self._dismissed}

    def put(self, key: str) -> None:
        with self._lock:
            self._dismissed[key] = datetime.now(timezone.utc)

    def dismissed_at(self, key: str) -> Optional[datetime]:
        return self._dismissed.get(key)


def message_digest(message: str) -> str:
    return hashlib.sha256((message or "").encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def strip_digest(key: str) -> str:
    """Drop a trailing message digest; subject ids may themselves contain "#"."""
    head, sep, tail = key.rpartition(DIGEST_SEPARATOR)
    if sep and len(tail) == DIGEST_LENGTH and all(c in "0123456789abcdef" for c in tail):
        return head
    return key


class DismissalStore:
    """
    Suppression ledger keyed on alert identity (kind, subject_id, bucket).

    realert_on_change=True folds a digest of the rendered message into the
    key, so any change in the displayed numbers resurfaces the alert.
    """

    def __init__(self, backend: DismissalBackend, *, realert_on_change: bool = False) -> None:
        self.backend = backend
        self.realert_on_change = realert_on_change

    def key_for(self, notification: Notification) -> str:
        key = str(notification.alert_key)
        if self.realert_on_change:
            return f"{key}{DIGEST_SEPARATOR}{message_digest(notification.message)}"
        return key

    def is_dismissed(self, alert_key: KeyLike) -> bool:
        key = str(alert_key)
        return key in self.backend.get([key])

    def dismiss(self, alert_key: KeyLike) -> None:
        key = str(alert_key)
        self.backend.put(key)
        logger.info("Alert dismissed: %s", key)

    def dismiss_notification(self, notification: Notification) -> str:
        key = self.key_for(notification)
        self.dismiss(key)
        return key

    def filter(self, notifications: Iterable[Notification]) -> List[Notification]:
        """Drop dismissed notifications, preserving order. One backend read per call."""
        items = list(notifications)
        if not items:
            return items
        dismissed = self.backend.get({self.key_for(n) for n in items})
        return [n for n in items if self.key_for(n) not in dismissed]
