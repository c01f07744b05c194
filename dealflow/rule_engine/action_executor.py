"""Action executors for workflow actions.

Each action kind has one executor wrapping a single external side effect.
Executors raise ExecutionError; ActionExecutor dispatches by kind and turns
the outcome into an ExecutionResult.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, TypeVar

from dealflow.rule_engine.errors import ExecutionError
from dealflow.rule_engine.models import (
    Action,
    ActionKind,
    AssignBroker,
    CreateTask,
    DealParties,
    ExecutionErrorKind,
    ExecutionRecord,
    Priority,
    SendNotification,
    UpdateField,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0


class TaskCreator(Protocol):
    async def create_task(
        self,
        deal_id: str,
        title: str,
        description: str | None,
        priority: Priority,
        due_at: datetime,
    ) -> Any: ...


class Notifier(Protocol):
    async def notify(
        self, recipient_id: str, title: str, message: str, deal_id: str | None = None
    ) -> Any: ...


class DealFieldWriter(Protocol):
    async def update_field(self, deal_id: str, field: str, value: str) -> Any: ...


class BrokerAssigner(Protocol):
    async def assign_broker(self, client_id: str, broker_id: str) -> Any: ...


class DealDirectory(Protocol):
    async def get_parties(self, deal_id: str) -> DealParties | None: ...


class ActivityLogger(Protocol):
    async def record(self, record: ExecutionRecord) -> Any: ...


async def bounded(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await an external call with a time bound.

    Args:
        awaitable: The capability call
        timeout: Seconds before giving up
        what: Short description used in error messages

    Returns:
        The call's result

    Raises:
        ExecutionError: TIMEOUT when the bound is exceeded, DEPENDENCY when
            the call fails with anything other than an ExecutionError
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except ExecutionError:
        raise
    except asyncio.TimeoutError:
        raise ExecutionError.timeout(f"{what} timed out after {timeout}s") from None
    except Exception as e:
        raise ExecutionError.dependency(f"{what} failed: {e}") from e


async def _require_parties(
    directory: DealDirectory, deal_id: str, timeout: float
) -> DealParties:
    parties = await bounded(directory.get_parties(deal_id), timeout, "deal lookup")
    if parties is None:
        raise ExecutionError.not_found(f"Deal '{deal_id}' not found")
    return parties


class CreateTaskExecutor:
    def __init__(
        self,
        task_creator: TaskCreator,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self.task_creator = task_creator
        self.timeout = timeout
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(self, action: CreateTask, deal_id: str) -> None:
        due_at = self.clock() + timedelta(days=action.due_in_days)
        await bounded(
            self.task_creator.create_task(
                deal_id=deal_id,
                title=action.title,
                description=action.description,
                priority=action.priority,
                due_at=due_at,
            ),
            self.timeout,
            "task creation",
        )


class SendNotificationExecutor:
    """Notifies the deal's client and/or broker.

    Every selected recipient is attempted even if an earlier one failed;
    the action fails afterwards if any delivery did.
    """

    def __init__(
        self,
        notifier: Notifier,
        directory: DealDirectory,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.notifier = notifier
        self.directory = directory
        self.timeout = timeout

    async def execute(self, action: SendNotification, deal_id: str) -> None:
        if not (action.notify_client or action.notify_broker):
            logger.info(
                f"Notification '{action.title}' for deal {deal_id} has no recipients selected; skipping"
            )
            return

        parties = await _require_parties(self.directory, deal_id, self.timeout)

        recipients = []
        if action.notify_client and parties.client_id:
            recipients.append(("client", parties.client_id))
        if action.notify_broker:
            if parties.broker_id:
                recipients.append(("broker", parties.broker_id))
            else:
                logger.info(f"Deal {deal_id} has no assigned broker; broker not notified")

        failures: list[ExecutionError] = []
        for role, recipient_id in recipients:
            try:
                await bounded(
                    self.notifier.notify(
                        recipient_id, action.title, action.message, deal_id=deal_id
                    ),
                    self.timeout,
                    f"{role} notification",
                )
            except ExecutionError as e:
                logger.warning(f"Notifying {role} {recipient_id} for deal {deal_id} failed: {e}")
                failures.append(e)

        if failures:
            kind = failures[0].kind if len(failures) == 1 else ExecutionErrorKind.DEPENDENCY
            raise ExecutionError(kind, "; ".join(str(e) for e in failures))


class UpdateFieldExecutor:
    def __init__(self, writer: DealFieldWriter, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.writer = writer
        self.timeout = timeout

    async def execute(self, action: UpdateField, deal_id: str) -> None:
        await bounded(
            self.writer.update_field(deal_id, action.field, action.value),
            self.timeout,
            f"update of field '{action.field}'",
        )


class AssignBrokerExecutor:
    def __init__(
        self,
        assigner: BrokerAssigner,
        directory: DealDirectory,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.assigner = assigner
        self.directory = directory
        self.timeout = timeout

    async def execute(self, action: AssignBroker, deal_id: str) -> None:
        parties = await _require_parties(self.directory, deal_id, self.timeout)
        await bounded(
            self.assigner.assign_broker(parties.client_id, action.broker_id),
            self.timeout,
            "broker assignment",
        )


@dataclass
class ExecutionResult:
    """Result of executing one action.

    Attributes:
        success: Whether the side effect completed
        error_kind: Failure category, None on success
        error: Error message if execution failed, None otherwise
    """

    success: bool
    error_kind: ExecutionErrorKind | None = None
    error: str | None = None


class ActionExecutor:
    """Dispatches actions to the executor registered for their kind."""

    def __init__(
        self,
        task_creator: TaskCreator,
        notifier: Notifier,
        deal_store: Any,
        broker_assigner: BrokerAssigner,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize the executor.

        Args:
            task_creator: Task store capability
            notifier: Notification delivery capability
            deal_store: Object providing both DealDirectory and DealFieldWriter
            broker_assigner: Broker assignment capability
            timeout: Bound in seconds on each external call
        """
        self.timeout = timeout
        self._executors = {
            ActionKind.CREATE_TASK: CreateTaskExecutor(task_creator, timeout),
            ActionKind.SEND_NOTIFICATION: SendNotificationExecutor(notifier, deal_store, timeout),
            ActionKind.UPDATE_FIELD: UpdateFieldExecutor(deal_store, timeout),
            ActionKind.ASSIGN_BROKER: AssignBrokerExecutor(broker_assigner, deal_store, timeout),
        }

    def register(self, kind: ActionKind, executor: Any) -> None:
        """Replace the executor used for an action kind."""
        self._executors[kind] = executor

    async def execute(self, action: Action, deal_id: str) -> ExecutionResult:
        """Execute one action against a deal; never raises ExecutionError.

        Args:
            action: The typed action
            deal_id: The deal the triggering event concerns

        Returns:
            ExecutionResult describing the outcome
        """
        executor = self._executors.get(action.kind)
        if executor is None:
            return ExecutionResult(
                success=False,
                error_kind=ExecutionErrorKind.DEPENDENCY,
                error=f"No executor registered for '{action.kind.value}'",
            )

        try:
            await executor.execute(action, deal_id)
        except ExecutionError as e:
            return ExecutionResult(success=False, error_kind=e.kind, error=str(e))

        return ExecutionResult(success=True)
