from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_subscription() -> None:
    _inc("subscriptions")


def record_duplicate_subscription() -> None:
    _inc("duplicate_subscriptions")


def record_unsubscription() -> None:
    _inc("unsubscriptions")


def record_contact_message() -> None:
    _inc("contact_messages")


def record_notification_failure() -> None:
    _inc("notification_failures")


def record_storage_failure() -> None:
    _inc("storage_failures")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
