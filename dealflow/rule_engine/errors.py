"""Exceptions raised by the workflow rule engine."""

from dealflow.rule_engine.models import ExecutionErrorKind


class WorkflowError(Exception):
    """Base class for workflow errors."""


class ValidationError(WorkflowError, ValueError):
    """A rule or action is malformed and must not be persisted.

    Attributes:
        errors: One message per problem found
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class RuleNotFoundError(WorkflowError, LookupError):
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Workflow rule '{rule_id}' not found")


class DealNotFoundError(WorkflowError, LookupError):
    def __init__(self, deal_id: str):
        self.deal_id = deal_id
        super().__init__(f"Deal '{deal_id}' not found")


class ExecutionError(WorkflowError):
    """An action's side effect failed.

    Attributes:
        kind: Failure category recorded in the activity log
    """

    def __init__(self, kind: ExecutionErrorKind, message: str):
        self.kind = kind
        super().__init__(message)

    @classmethod
    def dependency(cls, message: str) -> "ExecutionError":
        return cls(ExecutionErrorKind.DEPENDENCY, message)

    @classmethod
    def not_found(cls, message: str) -> "ExecutionError":
        return cls(ExecutionErrorKind.NOT_FOUND, message)

    @classmethod
    def timeout(cls, message: str) -> "ExecutionError":
        return cls(ExecutionErrorKind.TIMEOUT, message)

    @classmethod
    def invalid_field(cls, message: str) -> "ExecutionError":
        return cls(ExecutionErrorKind.INVALID_FIELD, message)
