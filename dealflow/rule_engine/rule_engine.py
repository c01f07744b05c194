"""Workflow engine reacting to deal status transitions."""

import asyncio
import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Protocol

from dealflow.rule_engine.action_executor import (
    DEFAULT_TIMEOUT_SECONDS,
    ActionExecutor,
    ActivityLogger,
    bounded,
)
from dealflow.rule_engine.models import (
    Action,
    ExecutionErrorKind,
    ExecutionOutcome,
    ExecutionRecord,
    ProcessingResult,
    ProcessingState,
    TransitionEvent,
    WorkflowRule,
)
from dealflow.rule_engine.rule_matcher import RuleMatcher

logger = logging.getLogger(__name__)


class RuleSource(Protocol):
    async def list_active_rules(self) -> Iterable[WorkflowRule]: ...


class DealLockRegistry:
    """One asyncio.Lock per deal id, dropped once nobody holds or awaits it.

    asyncio locks wake waiters in FIFO order, so events for the same deal
    run in arrival order.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, deal_id: str):
        lock = self._locks.setdefault(deal_id, asyncio.Lock())
        self._users[deal_id] = self._users.get(deal_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[deal_id] -= 1
            if self._users[deal_id] == 0:
                del self._users[deal_id]
                del self._locks[deal_id]

    def __len__(self) -> int:
        return len(self._locks)


class WorkflowEngine:
    """Runs workflow rules in response to deal status transitions.

    For each event the active rules are read fresh from the rule source and
    matched; matched rules run in matcher order and each rule's actions run
    strictly in list order. Execution is best effort: a failed action is
    recorded and the next one still runs, a failed rule never stops the
    others, and nothing is retried or rolled back. Workflow failures are
    never raised to whoever reported the transition.
    """

    def __init__(
        self,
        rule_source: RuleSource,
        action_executor: ActionExecutor,
        activity_logger: ActivityLogger | None = None,
        matcher: RuleMatcher | None = None,
        timeout: float | None = None,
    ):
        """Initialize the workflow engine.

        Args:
            rule_source: Store providing the active rules
            action_executor: Dispatcher for action side effects
            activity_logger: Sink for execution records (optional)
            matcher: Rule matcher, a default RuleMatcher if omitted
            timeout: Bound in seconds on rule loads and record writes, the
                action executor's timeout if omitted
        """
        self.rule_source = rule_source
        self.action_executor = action_executor
        self.activity_logger = activity_logger
        self.matcher = matcher or RuleMatcher()
        if timeout is None:
            timeout = getattr(action_executor, "timeout", DEFAULT_TIMEOUT_SECONDS)
        self.timeout = timeout
        self.locks = DealLockRegistry()
        self._tasks: set[asyncio.Task] = set()

    def on_deal_status_changed(
        self,
        deal_id: str,
        from_status: str | None,
        to_status: str,
        occurred_at: datetime | None = None,
    ) -> None:
        """Accept a committed status change and schedule its processing."""
        event = TransitionEvent(
            deal_id=deal_id,
            from_status=from_status,
            to_status=to_status,
            occurred_at=occurred_at or datetime.now(timezone.utc),
        )
        self.on_event(event)

    def on_event(self, event: TransitionEvent) -> None:
        """Handle a transition event from the event emitter.

        Processing is scheduled on the running loop; this call returns
        immediately and never raises.

        Args:
            event: The transition to process
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, process synchronously
            asyncio.run(self.process_event(event))
            return

        task = loop.create_task(self.process_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every scheduled event has been processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def process_event(self, event: TransitionEvent) -> ProcessingResult:
        """Process one transition event to completion.

        Args:
            event: The transition to process

        Returns:
            ProcessingResult in state DONE with one record per attempted action
        """
        result = ProcessingResult(event=event)
        logger.info(
            f"Workflow engine received event: deal {event.deal_id} "
            f"{event.from_status or '-'} -> {event.to_status}"
        )

        async with self.locks.hold(event.deal_id):
            result.state = ProcessingState.MATCHING
            matched = await self._match_rules(event)
            result.matched_rule_ids = [rule.id for rule in matched]

            if matched:
                logger.info(
                    f"Matched {len(matched)} rules for deal {event.deal_id}: {[r.name for r in matched]}"
                )
                result.state = ProcessingState.EXECUTING
                for rule in matched:
                    result.records.extend(await self._execute_rule(rule, event))
            else:
                logger.info(f"No rules matched for deal {event.deal_id} -> {event.to_status}")

        result.state = ProcessingState.DONE
        if result.failed_records:
            logger.warning(
                f"Deal {event.deal_id}: {len(result.failed_records)} of "
                f"{len(result.records)} workflow actions failed"
            )
        return result

    async def _match_rules(self, event: TransitionEvent) -> list[WorkflowRule]:
        """Read the current active rules and return the matches.

        The returned list is the snapshot the event executes against; later
        rule edits only affect subsequent events.
        """
        try:
            rules = list(
                await bounded(self.rule_source.list_active_rules(), self.timeout, "rule load")
            )
        except Exception:
            logger.exception(f"Could not load workflow rules for deal {event.deal_id}")
            return []
        return self.matcher.match(event, rules)

    async def _execute_rule(
        self, rule: WorkflowRule, event: TransitionEvent
    ) -> list[ExecutionRecord]:
        """Run a rule's actions in order, one record per action."""
        records = []
        for index, action in enumerate(rule.actions):
            record = await self._execute_action(rule, index, action, event)
            records.append(record)
            await self._record(record)
        return records

    async def _execute_action(
        self, rule: WorkflowRule, index: int, action: Action, event: TransitionEvent
    ) -> ExecutionRecord:
        try:
            outcome = await self.action_executor.execute(action, event.deal_id)
        except Exception as e:
            logger.exception(
                f"Unexpected error in action {index} ({action.kind.value}) of rule {rule.name}"
            )
            return self._failed(rule, index, action, event, ExecutionErrorKind.DEPENDENCY, str(e))

        if not outcome.success:
            logger.warning(
                f"Rule {rule.name} action {index} ({action.kind.value}) failed for deal "
                f"{event.deal_id}: [{outcome.error_kind.value}] {outcome.error}"
            )
            return self._failed(rule, index, action, event, outcome.error_kind, outcome.error)

        logger.debug(f"Rule {rule.name} action {index} ({action.kind.value}) succeeded")
        return ExecutionRecord(
            rule_id=rule.id,
            deal_id=event.deal_id,
            action_index=index,
            action_type=action.kind,
            outcome=ExecutionOutcome.SUCCESS,
            from_status=event.from_status,
            to_status=event.to_status,
        )

    def _failed(
        self,
        rule: WorkflowRule,
        index: int,
        action: Action,
        event: TransitionEvent,
        kind: ExecutionErrorKind | None,
        reason: Any,
    ) -> ExecutionRecord:
        return ExecutionRecord(
            rule_id=rule.id,
            deal_id=event.deal_id,
            action_index=index,
            action_type=action.kind,
            outcome=ExecutionOutcome.FAILED,
            error_kind=kind or ExecutionErrorKind.DEPENDENCY,
            reason=str(reason) if reason is not None else None,
            from_status=event.from_status,
            to_status=event.to_status,
        )

    async def _record(self, record: ExecutionRecord) -> None:
        if self.activity_logger is None:
            return
        try:
            await bounded(self.activity_logger.record(record), self.timeout, "activity record")
        except Exception:
            logger.exception(
                f"Failed to store execution record for rule {record.rule_id} "
                f"action {record.action_index} on deal {record.deal_id}"
            )
