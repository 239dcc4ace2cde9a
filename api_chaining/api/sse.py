"""In-process fan-out of execution lifecycle events to SSE subscribers."""

import json
import queue
import threading
from collections.abc import Iterator

_subscribers: dict[str, list[queue.Queue]] = {}
_lock = threading.Lock()

KEEPALIVE_SECONDS = 30


def subscribe(execution_id: str) -> queue.Queue:
    q: queue.Queue = queue.Queue()
    with _lock:
        _subscribers.setdefault(execution_id, []).append(q)
    return q


def unsubscribe(execution_id: str, q: queue.Queue) -> None:
    with _lock:
        queues = _subscribers.get(execution_id, [])
        if q in queues:
            queues.remove(q)
        if not queues:
            _subscribers.pop(execution_id, None)


def publish(execution_id: str, event_type: str, payload: dict) -> None:
    with _lock:
        for q in _subscribers.get(execution_id, []):
            q.put((event_type, payload))


def close(execution_id: str) -> None:
    """Signal end-of-stream to every subscriber and forget them."""
    with _lock:
        for q in _subscribers.pop(execution_id, []):
            q.put(None)


def format_event(event_type: str, payload: dict) -> str:
    return f"event: {event_type}\ndata: {json.dumps(payload, default=str)}\n\n"


def event_stream(q: queue.Queue, keepalive: float = KEEPALIVE_SECONDS) -> Iterator[str]:
    while True:
        try:
            item = q.get(timeout=keepalive)
        except queue.Empty:
            yield ": keepalive\n\n"
            continue
        if item is None:
            return
        yield format_event(*item)
