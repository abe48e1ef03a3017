import threading
import time
import uuid

_sequence_lock = threading.Lock()
_last_ns = 0


def generate_id() -> str:
    return uuid.uuid4().hex


def generate_sortable_id() -> str:
    """Id, который растет в порядке вставки: 16 hex времени в нс + 16 hex случайных."""
    global _last_ns
    with _sequence_lock:
        now = max(time.time_ns(), _last_ns + 1)
        _last_ns = now
    return f"{now:016x}{uuid.uuid4().hex[:16]}"
