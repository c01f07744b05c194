"""Tests for action executors."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from dealflow.rule_engine.action_executor import CreateTaskExecutor, bounded
from dealflow.rule_engine.errors import ExecutionError
from dealflow.rule_engine.models import (
    ActionKind,
    AssignBroker,
    CreateTask,
    DealParties,
    ExecutionErrorKind,
    Priority,
    SendNotification,
    UpdateField,
)


class TestBounded:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def call():
            return 42

        assert await bounded(call(), 1.0, "call") == 42

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(ExecutionError) as exc_info:
            await bounded(asyncio.sleep(1), 0.01, "slow call")
        assert exc_info.value.kind is ExecutionErrorKind.TIMEOUT
        assert "slow call timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_errors_become_dependency(self):
        async def call():
            raise ConnectionError("refused")

        with pytest.raises(ExecutionError) as exc_info:
            await bounded(call(), 1.0, "call")
        assert exc_info.value.kind is ExecutionErrorKind.DEPENDENCY
        assert "refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_execution_errors_pass_through(self):
        async def call():
            raise ExecutionError.invalid_field("bad field")

        with pytest.raises(ExecutionError) as exc_info:
            await bounded(call(), 1.0, "call")
        assert exc_info.value.kind is ExecutionErrorKind.INVALID_FIELD


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_due_date_offset_from_clock(self, collab):
        now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        executor = CreateTaskExecutor(collab.tasks, clock=lambda: now)

        await executor.execute(
            CreateTask(title="Chase valuation", description="Call surveyor", priority=Priority.HIGH, due_in_days=3),
            "deal-1",
        )

        assert collab.tasks.tasks == [
            {
                "deal_id": "deal-1",
                "title": "Chase valuation",
                "description": "Call surveyor",
                "priority": Priority.HIGH,
                "due_at": now + timedelta(days=3),
            }
        ]

    @pytest.mark.asyncio
    async def test_store_failure(self, collab):
        collab.tasks.error = RuntimeError("disk full")
        result = await collab.executor().execute(CreateTask(title="t"), "deal-1")

        assert not result.success
        assert result.error_kind is ExecutionErrorKind.DEPENDENCY
        assert "disk full" in result.error


class TestSendNotification:
    @pytest.mark.asyncio
    async def test_notifies_client_and_broker(self, collab):
        action = SendNotification(title="Update", message="Moved on", notify_client=True, notify_broker=True)

        result = await collab.executor().execute(action, "deal-1")

        assert result.success
        assert [sent[0] for sent in collab.notifier.sent] == ["client-1", "broker-1"]

    @pytest.mark.asyncio
    async def test_no_recipients_is_a_no_op(self, collab):
        result = await collab.executor().execute(SendNotification(title="t", message="m"), "missing-deal")

        assert result.success
        assert collab.notifier.sent == []

    @pytest.mark.asyncio
    async def test_client_failure_does_not_stop_broker(self, collab):
        collab.notifier.failing = {"client-1"}
        action = SendNotification(title="t", message="m", notify_client=True, notify_broker=True)

        result = await collab.executor().execute(action, "deal-1")

        assert not result.success
        assert result.error_kind is ExecutionErrorKind.DEPENDENCY
        assert [sent[0] for sent in collab.notifier.sent] == ["broker-1"]

    @pytest.mark.asyncio
    async def test_missing_broker_is_skipped(self, collab):
        collab.deals.parties["deal-1"] = DealParties(client_id="client-1")
        action = SendNotification(title="t", message="m", notify_broker=True)

        result = await collab.executor().execute(action, "deal-1")

        assert result.success
        assert collab.notifier.sent == []

    @pytest.mark.asyncio
    async def test_unknown_deal(self, collab):
        action = SendNotification(title="t", message="m", notify_client=True)

        result = await collab.executor().execute(action, "deal-404")

        assert result.error_kind is ExecutionErrorKind.NOT_FOUND


class TestUpdateFieldAndAssignBroker:
    @pytest.mark.asyncio
    async def test_update_field(self, collab):
        result = await collab.executor().execute(UpdateField(field="type", value="commercial"), "deal-1")

        assert result.success
        assert collab.deals.updates == [("deal-1", "type", "commercial")]

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, collab):
        result = await collab.executor().execute(UpdateField(field="colour", value="red"), "deal-1")

        assert result.error_kind is ExecutionErrorKind.INVALID_FIELD
        assert collab.deals.updates == []

    @pytest.mark.asyncio
    async def test_assign_broker_uses_deal_client(self, collab):
        result = await collab.executor().execute(AssignBroker(broker_id="broker-2"), "deal-1")

        assert result.success
        assert collab.brokers.assignments == [("client-1", "broker-2")]

    @pytest.mark.asyncio
    async def test_assign_broker_unknown_deal(self, collab):
        result = await collab.executor().execute(AssignBroker(broker_id="broker-2"), "deal-404")

        assert result.error_kind is ExecutionErrorKind.NOT_FOUND
        assert collab.brokers.assignments == []


class TestDispatch:
    @pytest.mark.asyncio
    async def test_register_replaces_executor(self, collab):
        calls = []

        class Recording:
            async def execute(self, action, deal_id):
                calls.append((action, deal_id))

        executor = collab.executor()
        executor.register(ActionKind.ASSIGN_BROKER, Recording())

        result = await executor.execute(AssignBroker(broker_id="anyone"), "deal-9")

        assert result.success
        assert calls == [(AssignBroker(broker_id="anyone"), "deal-9")]
