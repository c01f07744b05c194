"""Automatic in-app notification to the client on every deal status change."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from dealflow.models.deal import Deal
from dealflow.rule_engine.action_executor import Notifier
from dealflow.rule_engine.models import TransitionEvent, format_status

logger = logging.getLogger(__name__)


class StatusChangeNotifier:
    """Event listener telling the deal's client that the status moved.

    Runs independently of workflow rules; failures are logged only.
    """

    def __init__(self, session_provider: Callable[[], Any], notifier: Notifier):
        self.session_provider = session_provider
        self.notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    def on_event(self, event: TransitionEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.notify(event))
            return
        task = loop.create_task(self.notify(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def notify(self, event: TransitionEvent) -> bool:
        """Send the status notification for one event.

        Returns:
            True if a notification was delivered
        """
        try:
            async with self.session_provider() as session:
                deal = await session.get(Deal, event.deal_id)
                if deal is None:
                    logger.error(f"Status notification skipped: deal {event.deal_id} not found")
                    return False
                client_id, deal_name = deal.user_id, deal.name

            await self.notifier.notify(
                client_id,
                "Deal Status Updated",
                f'Your deal "{deal_name}" has moved to {format_status(event.to_status)}',
                deal_id=event.deal_id,
            )
            return True
        except Exception:
            logger.exception(f"Error sending status change notification for deal {event.deal_id}")
            return False
