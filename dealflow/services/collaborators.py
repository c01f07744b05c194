"""SQL implementations of the task, notification and broker capabilities."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from dealflow.models.deal import AutomatedTask, Notification, Profile
from dealflow.rule_engine.errors import ExecutionError
from dealflow.rule_engine.models import Priority

logger = logging.getLogger(__name__)


class SqlTaskCreator:
    """Creates pending automated tasks for a deal."""

    def __init__(self, session_provider: Callable[[], Any]):
        self.session_provider = session_provider

    async def create_task(
        self,
        deal_id: str,
        title: str,
        description: str | None,
        priority: Priority,
        due_at: datetime,
    ) -> str:
        async with self.session_provider() as session:
            task = AutomatedTask(
                deal_id=deal_id,
                title=title,
                description=description,
                priority=Priority(priority).value,
                status="pending",
                due_date=due_at,
            )
            session.add(task)
            await session.commit()
            task_id = task.id
        logger.info(f"Created task {task_id} '{title}' for deal {deal_id} (due {due_at.isoformat()})")
        return task_id


class InAppNotifier:
    """Delivers notifications into the in-app notification centre.

    Email/SMS delivery is handled elsewhere; this only writes the
    notification row the user sees in the portal.
    """

    def __init__(self, session_provider: Callable[[], Any], notification_type: str = "info"):
        self.session_provider = session_provider
        self.notification_type = notification_type

    async def notify(
        self, recipient_id: str, title: str, message: str, deal_id: str | None = None
    ) -> str:
        async with self.session_provider() as session:
            notification = Notification(
                user_id=recipient_id,
                title=title,
                message=message,
                type=self.notification_type,
                related_deal_id=deal_id,
            )
            session.add(notification)
            await session.commit()
            notification_id = notification.id
        logger.info(f"Notified {recipient_id}: {title[:80]!r}")
        return notification_id


class SqlBrokerAssigner:
    """Assigns a broker to a client profile."""

    def __init__(self, session_provider: Callable[[], Any]):
        self.session_provider = session_provider

    async def assign_broker(self, client_id: str, broker_id: str) -> None:
        """Point the client's assigned_broker at broker_id.

        Raises:
            ExecutionError: NOT_FOUND if the broker is unknown or inactive,
                or the client profile does not exist
        """
        async with self.session_provider() as session:
            broker = await session.get(Profile, broker_id)
            if broker is None or not broker.is_active_broker:
                raise ExecutionError.not_found(f"Broker '{broker_id}' not found or inactive")

            client = await session.get(Profile, client_id)
            if client is None:
                raise ExecutionError.not_found(f"Client profile '{client_id}' not found")

            client.assigned_broker = broker_id
            await session.commit()
        logger.info(f"Assigned broker {broker_id} to client {client_id}")
