from .dismissals import DismissalBackend, DismissalStore, InMemoryDismissalBackend
from .notifications import Notification, build
from .schema import AlertKey, TriggerEvent
from .thresholds import check_deadline, evaluate

__all__ = [
    "AlertKey",
    "DismissalBackend",
    "DismissalStore",
    "InMemoryDismissalBackend",
    "Notification",
    "TriggerEvent",
    "build",
    "check_deadline",
    "evaluate",
]
