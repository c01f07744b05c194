"""Wiring of the workflow engine to its SQL-backed collaborators."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dealflow.repositories.execution_repository import SqlActivityLogger
from dealflow.repositories.rule_repository import ActiveRuleSource
from dealflow.rule_engine.action_executor import ActionExecutor
from dealflow.rule_engine.event_emitter import DealEventEmitter
from dealflow.rule_engine.rule_engine import WorkflowEngine
from dealflow.services.collaborators import InAppNotifier, SqlBrokerAssigner, SqlTaskCreator
from dealflow.services.deal_store import SqlDealStore
from dealflow.services.status_notifications import StatusChangeNotifier


@dataclass
class WorkflowRuntime:
    emitter: DealEventEmitter
    engine: WorkflowEngine
    deal_store: SqlDealStore
    status_notifier: StatusChangeNotifier | None = None

    async def drain(self) -> None:
        """Wait for all in-flight event processing."""
        await self.engine.drain()
        if self.status_notifier is not None:
            await self.status_notifier.drain()


def build_runtime(
    session_provider: Callable[[], Any],
    action_timeout: float,
    status_notifications: bool = True,
) -> WorkflowRuntime:
    """Create the engine, its collaborators and the event emitter.

    Args:
        session_provider: Callable returning an async session context manager
        action_timeout: Bound in seconds on each external call
        status_notifications: Subscribe the automatic client status notification

    Returns:
        WorkflowRuntime with the engine subscribed to the emitter
    """
    deal_store = SqlDealStore(session_provider)
    notifier = InAppNotifier(session_provider)
    executor = ActionExecutor(
        task_creator=SqlTaskCreator(session_provider),
        notifier=notifier,
        deal_store=deal_store,
        broker_assigner=SqlBrokerAssigner(session_provider),
        timeout=action_timeout,
    )
    engine = WorkflowEngine(
        rule_source=ActiveRuleSource(session_provider),
        action_executor=executor,
        activity_logger=SqlActivityLogger(session_provider),
    )

    emitter = DealEventEmitter()
    status_notifier = None
    if status_notifications:
        status_notifier = StatusChangeNotifier(session_provider, notifier)
        emitter.subscribe(status_notifier.on_event)
    emitter.subscribe(engine.on_event)

    return WorkflowRuntime(
        emitter=emitter,
        engine=engine,
        deal_store=deal_store,
        status_notifier=status_notifier,
    )
