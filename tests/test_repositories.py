"""Tests for repository layer.

Tests the RuleRepository and ExecutionRepository classes.
"""

import pytest

from dealflow.models.workflow import WorkflowRule as WorkflowRuleRow
from dealflow.repositories.execution_repository import ExecutionRepository, SqlActivityLogger
from dealflow.repositories.rule_repository import ActiveRuleSource, RuleRepository
from dealflow.rule_engine.errors import RuleNotFoundError, ValidationError
from dealflow.rule_engine.models import (
    ActionKind,
    CreateTask,
    DealStatus,
    ExecutionErrorKind,
    ExecutionOutcome,
    ExecutionRecord,
)

WELCOME_ACTIONS = [
    {"type": "send_notification", "params": {"title": "Welcome", "message": "Hello", "notify_client": True}},
    {"type": "create_task", "params": {"title": "Review new client case", "due_in_days": 1}},
]


class TestRuleRepository:
    """Test RuleRepository."""

    @pytest.mark.asyncio
    async def test_create_rule(self, test_session):
        """Test creating a rule stores the normalized actions."""
        repo = RuleRepository(test_session)
        rule = await repo.create(name=" Welcome ", to_status="new_case", actions=WELCOME_ACTIONS)

        assert rule.id is not None
        assert rule.name == "Welcome"
        assert rule.from_status is None
        assert rule.to_status == "new_case"
        assert rule.trigger_type == "status_change"
        assert rule.is_active is True
        assert rule.actions[1] == {
            "type": "create_task",
            "params": {"title": "Review new client case", "description": None, "priority": "medium", "due_in_days": 1},
        }

    @pytest.mark.asyncio
    async def test_create_accepts_typed_actions(self, test_session):
        repo = RuleRepository(test_session)
        rule = await repo.create(
            name="Offer", to_status="offered", from_status="any", actions=[CreateTask(title="Send pack")]
        )
        assert rule.from_status is None
        assert rule.actions[0]["params"]["title"] == "Send pack"

    @pytest.mark.asyncio
    async def test_create_invalid_rule_reports_every_problem(self, test_session):
        """Test that validation errors are collected and nothing is stored."""
        repo = RuleRepository(test_session)
        with pytest.raises(ValidationError) as exc_info:
            await repo.create(
                name="",
                to_status="any",
                actions=[{"type": "assign_broker", "params": {}}],
            )

        assert len(exc_info.value.errors) == 3
        assert await repo.list_all() == []

    @pytest.mark.asyncio
    async def test_create_rejects_unrecognized_update_field(self, test_session):
        repo = RuleRepository(test_session, recognized_fields={"name", "amount"})
        with pytest.raises(ValidationError, match="not an updatable deal field"):
            await repo.create(
                name="Bad field",
                to_status="offered",
                actions=[{"type": "update_field", "params": {"field": "colour", "value": "red"}}],
            )

    @pytest.mark.asyncio
    async def test_get(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(
            name="DIP", to_status="dip_approved", from_status="awaiting_dip", actions=WELCOME_ACTIONS
        )

        rule = await repo.get(created.id)

        assert rule.trigger.from_status is DealStatus.AWAITING_DIP
        assert rule.trigger.to_status is DealStatus.DIP_APPROVED
        assert [action.kind for action in rule.actions] == [
            ActionKind.SEND_NOTIFICATION,
            ActionKind.CREATE_TASK,
        ]

    @pytest.mark.asyncio
    async def test_get_not_found(self, test_session):
        repo = RuleRepository(test_session)
        assert await repo.get_by_id("missing") is None
        with pytest.raises(RuleNotFoundError):
            await repo.get("missing")

    @pytest.mark.asyncio
    async def test_list_active_rules(self, test_session):
        """Test that inactive and unparseable rules are excluded."""
        repo = RuleRepository(test_session)
        await repo.create(name="Active", to_status="new_case", actions=WELCOME_ACTIONS)
        await repo.create(name="Inactive", to_status="new_case", actions=WELCOME_ACTIONS, is_active=False)
        test_session.add(
            WorkflowRuleRow(name="Broken", to_status="no_such_status", actions=[{"type": "bogus"}])
        )
        await test_session.commit()

        rules = await repo.list_active_rules()

        assert [rule.name for rule in rules] == ["Active"]

    @pytest.mark.asyncio
    async def test_update(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(
            name="DIP", description="old", to_status="dip_approved", from_status="awaiting_dip", actions=[]
        )

        updated = await repo.update(
            created.id,
            name="DIP approved",
            description=None,
            from_status=None,
            actions=[{"type": "assign_broker", "params": {"broker_id": "broker-2"}}],
        )

        assert updated.name == "DIP approved"
        assert updated.description is None
        assert updated.from_status is None
        assert updated.to_status == "dip_approved"
        assert updated.actions == [{"type": "assign_broker", "params": {"broker_id": "broker-2"}}]

    @pytest.mark.asyncio
    async def test_update_keeps_unspecified_fields(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(
            name="DIP", description="keep me", to_status="dip_approved", from_status="awaiting_dip", actions=[]
        )

        updated = await repo.update(created.id, to_status="reports_instructed")

        assert updated.description == "keep me"
        assert updated.from_status == "awaiting_dip"
        assert updated.to_status == "reports_instructed"

    @pytest.mark.asyncio
    async def test_invalid_update_changes_nothing(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(name="Offer", to_status="offered", actions=[])

        with pytest.raises(ValidationError):
            await repo.update(created.id, name="Renamed", to_status="nowhere")

        rule = await repo.get(created.id)
        assert rule.name == "Offer"
        assert rule.trigger.to_status is DealStatus.OFFERED

    @pytest.mark.asyncio
    async def test_set_active(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(name="Offer", to_status="offered", actions=[])

        await repo.set_active(created.id, False)
        assert await repo.list_active_rules() == []

        await repo.set_active(created.id, True)
        assert len(await repo.list_active_rules()) == 1

        with pytest.raises(RuleNotFoundError):
            await repo.set_active("missing", True)

    @pytest.mark.asyncio
    async def test_delete(self, test_session):
        repo = RuleRepository(test_session)
        created = await repo.create(name="Offer", to_status="offered", actions=[])

        await repo.delete(created.id)

        assert await repo.get_by_id(created.id) is None
        with pytest.raises(RuleNotFoundError):
            await repo.delete(created.id)

    @pytest.mark.asyncio
    async def test_active_rule_source_sees_committed_rules(self, session_provider, test_session):
        source = ActiveRuleSource(session_provider)
        assert await source.list_active_rules() == []

        await RuleRepository(test_session).create(name="Offer", to_status="offered", actions=[])

        rules = await source.list_active_rules()
        assert [rule.name for rule in rules] == ["Offer"]


class TestExecutionRepository:
    """Test ExecutionRepository."""

    @pytest.mark.asyncio
    async def test_add_and_list(self, test_session):
        repo = ExecutionRepository(test_session)
        await repo.add(
            ExecutionRecord(
                rule_id="rule-1",
                deal_id="deal-1",
                action_index=0,
                action_type=ActionKind.CREATE_TASK,
                outcome=ExecutionOutcome.SUCCESS,
            )
        )
        await repo.add(
            ExecutionRecord(
                rule_id="rule-1",
                deal_id="deal-2",
                action_index=1,
                action_type=ActionKind.ASSIGN_BROKER,
                outcome=ExecutionOutcome.FAILED,
                error_kind=ExecutionErrorKind.NOT_FOUND,
                reason="Broker 'x' not found or inactive",
            )
        )

        rows = await repo.list_records()
        assert [row.deal_id for row in rows] == ["deal-2", "deal-1"]
        assert rows[0].status == "failed"
        assert rows[0].error_kind == "not_found"
        assert rows[0].error_message == "Broker 'x' not found or inactive"
        assert rows[1].error_kind is None

        assert [row.deal_id for row in await repo.list_records(deal_id="deal-1")] == ["deal-1"]
        assert len(await repo.list_records(rule_id="rule-1", limit=1)) == 1
        assert await repo.list_records(rule_id="other") == []

    @pytest.mark.asyncio
    async def test_rows_keep_the_triggering_transition(self, test_session):
        repo = ExecutionRepository(test_session)
        await repo.add(
            ExecutionRecord(
                rule_id="rule-1",
                deal_id="deal-1",
                action_index=0,
                action_type=ActionKind.SEND_NOTIFICATION,
                outcome=ExecutionOutcome.SUCCESS,
                from_status="",
                to_status="new_case",
            )
        )
        await repo.add(
            ExecutionRecord(
                rule_id="rule-2",
                deal_id="deal-1",
                action_index=0,
                action_type=ActionKind.CREATE_TASK,
                outcome=ExecutionOutcome.SUCCESS,
                from_status="awaiting_dip",
                to_status="dip_approved",
            )
        )

        (first,) = await repo.list_records(rule_id="rule-1")
        (second,) = await repo.list_records(rule_id="rule-2")
        assert (first.from_status, first.to_status) == (None, "new_case")
        assert (second.from_status, second.to_status) == ("awaiting_dip", "dip_approved")

    @pytest.mark.asyncio
    async def test_sql_activity_logger(self, session_provider, test_session):
        await SqlActivityLogger(session_provider).record(
            ExecutionRecord(
                rule_id="rule-1",
                deal_id="deal-1",
                action_index=0,
                action_type=ActionKind.UPDATE_FIELD,
                outcome=ExecutionOutcome.SUCCESS,
            )
        )

        rows = await ExecutionRepository(test_session).list_records()
        assert len(rows) == 1
        assert rows[0].action_type == "update_field"
