"""In-memory collaborators for workflow engine tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from dealflow.rule_engine.action_executor import ActionExecutor
from dealflow.rule_engine.errors import ExecutionError
from dealflow.rule_engine.models import DealParties, Trigger, WorkflowRule
from dealflow.rule_engine.rule_engine import WorkflowEngine

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_rule(rule_id, to_status, actions, from_status="any", is_active=True, order=0, name=None):
    return WorkflowRule(
        id=rule_id,
        name=name or rule_id,
        trigger=Trigger(to_status=to_status, from_status=from_status),
        actions=tuple(actions),
        is_active=is_active,
        created_at=BASE_TIME + timedelta(minutes=order),
    )


class FakeRuleSource:
    def __init__(self, rules=None):
        self.rules = list(rules or [])
        self.reads = 0

    async def list_active_rules(self):
        self.reads += 1
        return [rule for rule in self.rules if rule.is_active]


class FakeTaskCreator:
    def __init__(self):
        self.tasks = []
        self.error = None
        self.delay = 0.0

    async def create_task(self, deal_id, title, description, priority, due_at):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.tasks.append(
            {"deal_id": deal_id, "title": title, "description": description,
             "priority": priority, "due_at": due_at}
        )
        return f"task-{len(self.tasks)}"


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.failing = set()

    async def notify(self, recipient_id, title, message, deal_id=None):
        if recipient_id in self.failing:
            raise ConnectionError(f"cannot reach {recipient_id}")
        self.sent.append((recipient_id, title, message, deal_id))


class FakeDealStore:
    def __init__(self):
        self.parties = {"deal-1": DealParties(client_id="client-1", broker_id="broker-1")}
        self.fields = {"name", "amount", "type", "status"}
        self.updates = []

    async def get_parties(self, deal_id):
        return self.parties.get(deal_id)

    async def update_field(self, deal_id, field, value):
        if field not in self.fields:
            raise ExecutionError.invalid_field(f"'{field}' is not an updatable deal field")
        if deal_id not in self.parties:
            raise ExecutionError.not_found(f"Deal '{deal_id}' not found")
        self.updates.append((deal_id, field, value))


class FakeBrokerAssigner:
    def __init__(self):
        self.brokers = {"broker-1", "broker-2"}
        self.assignments = []

    async def assign_broker(self, client_id, broker_id):
        if broker_id not in self.brokers:
            raise ExecutionError.not_found(f"Broker '{broker_id}' not found or inactive")
        self.assignments.append((client_id, broker_id))


class FakeActivityLogger:
    def __init__(self):
        self.records = []

    async def record(self, record):
        self.records.append(record)


class Collaborators:
    def __init__(self):
        self.rules = FakeRuleSource()
        self.tasks = FakeTaskCreator()
        self.notifier = FakeNotifier()
        self.deals = FakeDealStore()
        self.brokers = FakeBrokerAssigner()
        self.activity = FakeActivityLogger()

    def executor(self, timeout=1.0):
        return ActionExecutor(
            task_creator=self.tasks,
            notifier=self.notifier,
            deal_store=self.deals,
            broker_assigner=self.brokers,
            timeout=timeout,
        )

    def engine(self, timeout=1.0):
        return WorkflowEngine(
            rule_source=self.rules,
            action_executor=self.executor(timeout),
            activity_logger=self.activity,
        )


@pytest.fixture
def collab():
    return Collaborators()


@pytest.fixture
def engine(collab):
    return collab.engine()


@pytest.fixture
def make_rule():
    """Factory for WorkflowRule snapshots; ``order`` spaces out created_at."""
    return build_rule
