"""Event emitter for deal status transitions."""

import logging
from typing import Callable, List

from dealflow.rule_engine.models import TransitionEvent

logger = logging.getLogger(__name__)

Listener = Callable[[TransitionEvent], None]


class DealEventEmitter:
    """Broadcasts committed deal status transitions to listeners.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event and the emitter never fails the caller.
    """

    def __init__(self) -> None:
        """Initialize an empty list of listeners."""
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        """Subscribe a listener to transition events.

        Args:
            listener: A callable that accepts a TransitionEvent.

        Raises:
            ValueError: If the listener is already subscribed.
        """
        if listener in self._listeners:
            raise ValueError("Listener is already subscribed")
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Unsubscribe a listener.

        Raises:
            ValueError: If the listener is not subscribed.
        """
        try:
            self._listeners.remove(listener)
        except ValueError:
            raise ValueError("Listener is not subscribed") from None

    def emit(self, event: TransitionEvent) -> None:
        """Emit a transition event to all subscribed listeners."""
        logger.debug(
            f"DealEventEmitter.emit(): deal {event.deal_id} "
            f"{event.from_status or '-'} -> {event.to_status}"
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener {listener!r} failed for deal {event.deal_id}")
