"""Repository layer for database operations.

This module provides repository classes for workflow rules and the
workflow activity log.
"""

from dealflow.repositories.rule_repository import (
    ActiveRuleSource,
    RuleRepository,
    to_workflow_rule,
)
from dealflow.repositories.execution_repository import (
    ExecutionRepository,
    SqlActivityLogger,
)

__all__ = [
    "ActiveRuleSource",
    "RuleRepository",
    "to_workflow_rule",
    "ExecutionRepository",
    "SqlActivityLogger",
]
