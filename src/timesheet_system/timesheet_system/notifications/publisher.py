"""Live push of notifications to connected clients.

Delivery is best effort: a subscriber that is not reading fast enough loses
messages once its queue is full. Persisted notifications remain the source
of truth; clients re-fetch ``GET /notifications`` after reconnecting.
"""
from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Iterator, Protocol

from loguru import logger

from ..core.constants import LIVE_QUEUE_SIZE


class LivePublisher(Protocol):
    def publish(self, recipient_id: int, payload: dict) -> None:
        raise NotImplementedError


class NullPublisher(LivePublisher):
    def publish(self, recipient_id: int, payload: dict) -> None:
        logger.debug(f"Live push disabled, dropping {payload.get('type')} for user {recipient_id}")


@dataclass(eq=False)
class Subscription:
    user_id: int
    messages: "queue.Queue[dict]" = field(default_factory=lambda: queue.Queue(maxsize=LIVE_QUEUE_SIZE))


class SSEBroker(LivePublisher):
    """Process-wide fan-out of notification payloads to per-connection queues."""

    def __init__(self, *, heartbeat_seconds: float = 15.0):
        self._lock = threading.Lock()
        self._subscriptions: dict[int, set[Subscription]] = {}
        self._heartbeat = float(heartbeat_seconds)

    def subscribe(self, user_id: int) -> Subscription:
        sub = Subscription(user_id=int(user_id))
        with self._lock:
            self._subscriptions.setdefault(sub.user_id, set()).add(sub)
        logger.debug(f"Live subscriber added for user {user_id}")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.user_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscriptions[sub.user_id]
        logger.debug(f"Live subscriber removed for user {sub.user_id}")

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(int(user_id), ()))

    def publish(self, recipient_id: int, payload: dict) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(int(recipient_id), ()))
        for sub in targets:
            try:
                sub.messages.put_nowait(payload)
            except queue.Full:
                logger.warning(f"Live queue full for user {recipient_id}, message dropped")

    def iter_events(self, sub: Subscription) -> Iterator[str]:
        """Yield Server-Sent Events frames until the client goes away."""
        try:
            yield ": connected\n\n"
            while True:
                try:
                    payload = sub.messages.get(timeout=self._heartbeat)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: {payload.get('type', 'notification')}\n"
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            self.unsubscribe(sub)
