"""Shared data models for the workflow rule engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Union


class DealStatus(str, Enum):
    """Deal lifecycle statuses, in pipeline order."""

    NEW_CASE = "new_case"
    AWAITING_DIP = "awaiting_dip"
    DIP_APPROVED = "dip_approved"
    REPORTS_INSTRUCTED = "reports_instructed"
    FINAL_UNDERWRITING = "final_underwriting"
    OFFERED = "offered"
    WITH_SOLICITORS = "with_solicitors"
    COMPLETED = "completed"


ANY_STATUS = "any"


def format_status(status: str | None) -> str:
    """Turn a status code into a display label, e.g. "dip_approved" -> "Dip Approved"."""
    if not status:
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in str(status).split("_"))


class ActionKind(str, Enum):
    CREATE_TASK = "create_task"
    SEND_NOTIFICATION = "send_notification"
    UPDATE_FIELD = "update_field"
    ASSIGN_BROKER = "assign_broker"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Trigger:
    """Status transition a rule reacts to.

    from_status is ANY_STATUS to match every originating status.
    """

    to_status: DealStatus
    from_status: DealStatus | str = ANY_STATUS

    @property
    def is_wildcard(self) -> bool:
        return self.from_status == ANY_STATUS

    def describe(self) -> str:
        from_label = ANY_STATUS if self.is_wildcard else DealStatus(self.from_status).value
        return f'When status changes from "{from_label}" to "{self.to_status.value}"'


@dataclass(frozen=True)
class CreateTask:
    kind: ClassVar[ActionKind] = ActionKind.CREATE_TASK

    title: str
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    due_in_days: int = 0

    def describe(self) -> str:
        return f'Create task: "{self.title}"'


@dataclass(frozen=True)
class SendNotification:
    kind: ClassVar[ActionKind] = ActionKind.SEND_NOTIFICATION

    title: str
    message: str
    notify_client: bool = False
    notify_broker: bool = False

    def describe(self) -> str:
        return f'Send notification: "{self.title}"'


@dataclass(frozen=True)
class UpdateField:
    kind: ClassVar[ActionKind] = ActionKind.UPDATE_FIELD

    field: str
    value: str

    def describe(self) -> str:
        return f'Update {self.field} to "{self.value}"'


@dataclass(frozen=True)
class AssignBroker:
    kind: ClassVar[ActionKind] = ActionKind.ASSIGN_BROKER

    broker_id: str

    def describe(self) -> str:
        return "Assign to broker"


Action = Union[CreateTask, SendNotification, UpdateField, AssignBroker]


@dataclass(frozen=True)
class WorkflowRule:
    """Immutable snapshot of a stored workflow rule."""

    id: str
    name: str
    trigger: Trigger
    actions: tuple[Action, ...]
    is_active: bool = True
    description: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class TransitionEvent:
    """A committed deal status change.

    from_status is None (or empty) when the deal had no previous status.
    """

    deal_id: str
    from_status: str | None
    to_status: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ExecutionOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ExecutionErrorKind(str, Enum):
    DEPENDENCY = "dependency"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    INVALID_FIELD = "invalid_field"


@dataclass(frozen=True)
class ExecutionRecord:
    """Audit entry for one attempted action."""

    rule_id: str
    deal_id: str
    action_index: int
    action_type: ActionKind
    outcome: ExecutionOutcome
    error_kind: ExecutionErrorKind | None = None
    reason: str | None = None
    from_status: str | None = None
    to_status: str | None = None
    executed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.outcome is ExecutionOutcome.SUCCESS


@dataclass(frozen=True)
class DealParties:
    """The people attached to a deal: the owning client and their broker."""

    client_id: str
    broker_id: str | None = None


class ProcessingState(str, Enum):
    RECEIVED = "received"
    MATCHING = "matching"
    EXECUTING = "executing"
    DONE = "done"


@dataclass
class ProcessingResult:
    """Outcome of processing one transition event."""

    event: TransitionEvent
    state: ProcessingState = ProcessingState.RECEIVED
    matched_rule_ids: list[str] = field(default_factory=list)
    records: list[ExecutionRecord] = field(default_factory=list)

    @property
    def failed_records(self) -> list[ExecutionRecord]:
        return [r for r in self.records if not r.succeeded]
