from __future__ import annotations

from concurrent.futures import Executor
from typing import Optional

from loguru import logger

from ..core.constants import DEFAULT_OUTBOX_BATCH, OUTBOX_MAX_ATTEMPTS
from .dispatcher import NotificationDispatcher
from .repository import OutboxRepository


class OutboxRelay:
    """Delivers committed transition events to the dispatcher.

    Events are handed to a process-owned executor right after commit; events
    left behind by a crash or a failed attempt are picked up by ``drain``.
    Delivery is at-least-once.
    """

    def __init__(
        self,
        outbox: OutboxRepository,
        dispatcher: NotificationDispatcher,
        *,
        executor: Optional[Executor] = None,
        max_attempts: int = OUTBOX_MAX_ATTEMPTS,
    ):
        self._outbox = outbox
        self._dispatcher = dispatcher
        self._executor = executor
        self._max_attempts = int(max_attempts)

    def schedule(self, event_id: Optional[int]) -> None:
        if event_id is None:
            return
        if self._executor is None:
            self.dispatch(event_id)
            return
        try:
            self._executor.submit(self.dispatch, event_id)
        except RuntimeError:
            # Executor already shut down; drain will pick the event up.
            logger.warning(f"Outbox event {event_id} left pending: worker pool is shut down")

    def dispatch(self, event_id: int) -> bool:
        try:
            if not self._outbox.claim(event_id):
                logger.debug(f"Outbox event {event_id} already claimed or processed")
                return False
            event = self._outbox.get(event_id)
            if event is None:
                return False
        except Exception:
            logger.exception(f"Could not claim outbox event {event_id}")
            return False

        try:
            self._dispatcher.handle(event)
        except Exception as exc:
            logger.exception(f"Outbox event {event_id} ({event.event_type.value}) failed on attempt {event.attempts}")
            try:
                self._outbox.mark_failed(event_id, error=f"{type(exc).__name__}: {exc}")
            except Exception:
                logger.exception(f"Could not record failure of outbox event {event_id}")
            return False

        try:
            self._outbox.mark_processed(event_id)
        except Exception:
            logger.exception(f"Outbox event {event_id} handled but not marked processed")
            return False
        logger.debug(f"Outbox event {event_id} ({event.event_type.value}) processed")
        return True

    def drain(self, *, limit: int = DEFAULT_OUTBOX_BATCH) -> int:
        """Dispatch pending events once each; returns how many succeeded."""
        pending = self._outbox.list_pending(limit=int(limit), max_attempts=self._max_attempts)
        done = sum(1 for event in pending if self.dispatch(event.event_id))
        if pending:
            logger.info(f"Outbox drain: {done}/{len(pending)} event(s) processed")
        return done

    def shutdown(self, *, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            logger.debug("Outbox worker pool stopped")
