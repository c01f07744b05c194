"""Deal-status workflow rule engine.

Event-condition-action rules over deal lifecycle transitions:

- Typed triggers and actions, validated before they are stored
- Matching of status transitions against the active rules
- Ordered, best-effort execution of each matched rule's actions
- One audit record per attempted action
"""

# Data models
from dealflow.rule_engine.models import (
    ANY_STATUS,
    Action,
    ActionKind,
    AssignBroker,
    CreateTask,
    DealParties,
    DealStatus,
    ExecutionErrorKind,
    ExecutionOutcome,
    ExecutionRecord,
    Priority,
    ProcessingResult,
    ProcessingState,
    SendNotification,
    TransitionEvent,
    Trigger,
    UpdateField,
    WorkflowRule,
    format_status,
)

# Errors
from dealflow.rule_engine.errors import (
    DealNotFoundError,
    ExecutionError,
    RuleNotFoundError,
    ValidationError,
    WorkflowError,
)

# Matcher, executors and engine
from dealflow.rule_engine.rule_matcher import RuleMatcher
from dealflow.rule_engine.action_executor import ActionExecutor, ExecutionResult
from dealflow.rule_engine.rule_engine import WorkflowEngine

# Event emitter
from dealflow.rule_engine.event_emitter import DealEventEmitter

__all__ = [
    "ANY_STATUS",
    "Action",
    "ActionKind",
    "AssignBroker",
    "CreateTask",
    "DealParties",
    "DealStatus",
    "ExecutionErrorKind",
    "ExecutionOutcome",
    "ExecutionRecord",
    "Priority",
    "ProcessingResult",
    "ProcessingState",
    "SendNotification",
    "TransitionEvent",
    "Trigger",
    "UpdateField",
    "WorkflowRule",
    "format_status",
    "DealNotFoundError",
    "ExecutionError",
    "RuleNotFoundError",
    "ValidationError",
    "WorkflowError",
    "RuleMatcher",
    "ActionExecutor",
    "ExecutionResult",
    "WorkflowEngine",
    "DealEventEmitter",
]
