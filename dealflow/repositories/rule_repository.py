"""Repository for workflow rule database operations."""

import logging
from collections.abc import Callable, Collection
from typing import Any, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dealflow.models.workflow import WorkflowRule as WorkflowRuleRow
from dealflow.rule_engine.errors import RuleNotFoundError, ValidationError
from dealflow.rule_engine.models import ANY_STATUS, Trigger, WorkflowRule
from dealflow.rule_engine.validation import (
    build_trigger,
    parse_actions,
    serialize_action,
    validate_name,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def to_workflow_rule(row: WorkflowRuleRow) -> WorkflowRule:
    """Convert a stored rule into an immutable engine rule.

    Raises:
        ValidationError: If the stored trigger or actions are malformed
    """
    return WorkflowRule(
        id=row.id,
        name=row.name,
        description=row.description,
        trigger=build_trigger(row.from_status, row.to_status),
        actions=parse_actions(row.actions),
        is_active=row.is_active,
        created_at=row.created_at,
    )


class RuleRepository:
    """Repository for WorkflowRule database operations.

    Every write is validated first; a ValidationError leaves the database
    untouched.
    """

    def __init__(
        self,
        session: AsyncSession,
        recognized_fields: Collection[str] | None = None,
    ):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy async session
            recognized_fields: Deal fields UpdateField actions may target;
                not checked when None
        """
        self.session = session
        self.recognized_fields = recognized_fields

    def _validated_actions(self, actions: Any) -> list[dict[str, Any]]:
        parsed = parse_actions(actions, recognized_fields=self.recognized_fields)
        return [serialize_action(action) for action in parsed]

    async def create(
        self,
        name: str,
        to_status: str,
        actions: list[Any],
        from_status: Optional[str] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> WorkflowRuleRow:
        """Create a new rule.

        Args:
            name: Display name
            to_status: Status the rule reacts to
            actions: Ordered actions, stored form or action dataclasses
            from_status: Originating status, None or "any" for every status
            description: Optional description
            is_active: Whether the rule is active

        Returns:
            Created WorkflowRule row

        Raises:
            ValidationError: If any part of the rule is malformed
        """
        errors = []
        try:
            name = validate_name(name)
        except ValidationError as e:
            errors.extend(e.errors)
        try:
            trigger = build_trigger(from_status, to_status)
        except ValidationError as e:
            errors.extend(e.errors)
        try:
            stored_actions = self._validated_actions(actions)
        except ValidationError as e:
            errors.extend(e.errors)
        if errors:
            raise ValidationError(errors)

        rule = WorkflowRuleRow(
            name=name,
            description=description or None,
            from_status=_stored_from_status(trigger),
            to_status=trigger.to_status.value,
            actions=stored_actions,
            is_active=is_active,
        )
        self.session.add(rule)
        await self.session.commit()
        await self.session.refresh(rule)
        logger.info(f"Created workflow rule '{rule.name}' ({rule.id})")
        return rule

    async def get_by_id(self, rule_id: str) -> Optional[WorkflowRuleRow]:
        """Get a rule row by ID, or None."""
        result = await self.session.execute(
            select(WorkflowRuleRow).where(WorkflowRuleRow.id == rule_id)
        )
        return result.scalar_one_or_none()

    async def get(self, rule_id: str) -> WorkflowRule:
        """Get a rule by ID.

        Raises:
            RuleNotFoundError: If no such rule exists
        """
        row = await self.get_by_id(rule_id)
        if row is None:
            raise RuleNotFoundError(rule_id)
        return to_workflow_rule(row)

    async def list_active_rules(self) -> List[WorkflowRule]:
        """List all active rules as engine rules.

        Rows whose stored content no longer validates are skipped with a
        warning so one bad row cannot stop every other rule.
        """
        result = await self.session.execute(
            select(WorkflowRuleRow).where(WorkflowRuleRow.is_active == True)
        )
        rules = []
        for row in result.scalars().all():
            try:
                rules.append(to_workflow_rule(row))
            except ValidationError as e:
                logger.warning(f"Skipping invalid workflow rule '{row.name}' ({row.id}): {e}")
        return rules

    async def list_all(self) -> List[WorkflowRuleRow]:
        """List all rules, newest first."""
        result = await self.session.execute(
            select(WorkflowRuleRow).order_by(
                WorkflowRuleRow.created_at.desc(), WorkflowRuleRow.id
            )
        )
        return list(result.scalars().all())

    async def update(
        self,
        rule_id: str,
        name: Optional[str] = None,
        description: Any = _UNSET,
        from_status: Any = _UNSET,
        to_status: Optional[str] = None,
        actions: Optional[list[Any]] = None,
        is_active: Optional[bool] = None,
    ) -> WorkflowRuleRow:
        """Update a rule.

        Only the given fields change; description and from_status may be
        set to None explicitly (None from_status means any status).

        Raises:
            RuleNotFoundError: If no such rule exists
            ValidationError: If the patched rule would be malformed
        """
        rule = await self.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        errors = []
        new_name = rule.name
        if name is not None:
            try:
                new_name = validate_name(name)
            except ValidationError as e:
                errors.extend(e.errors)

        trigger = None
        if from_status is not _UNSET or to_status is not None:
            try:
                trigger = build_trigger(
                    rule.from_status if from_status is _UNSET else from_status,
                    rule.to_status if to_status is None else to_status,
                )
            except ValidationError as e:
                errors.extend(e.errors)

        stored_actions = None
        if actions is not None:
            try:
                stored_actions = self._validated_actions(actions)
            except ValidationError as e:
                errors.extend(e.errors)

        if errors:
            raise ValidationError(errors)

        rule.name = new_name
        if description is not _UNSET:
            rule.description = description or None
        if trigger is not None:
            rule.from_status = _stored_from_status(trigger)
            rule.to_status = trigger.to_status.value
        if stored_actions is not None:
            rule.actions = stored_actions
        if is_active is not None:
            rule.is_active = is_active

        await self.session.commit()
        await self.session.refresh(rule)
        return rule

    async def set_active(self, rule_id: str, is_active: bool) -> WorkflowRuleRow:
        """Activate or deactivate a rule.

        Raises:
            RuleNotFoundError: If no such rule exists
        """
        return await self.update(rule_id, is_active=is_active)

    async def delete(self, rule_id: str) -> None:
        """Delete a rule.

        Raises:
            RuleNotFoundError: If no such rule exists
        """
        rule = await self.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        await self.session.delete(rule)
        await self.session.commit()
        logger.info(f"Deleted workflow rule '{rule.name}' ({rule_id})")


class ActiveRuleSource:
    """Reads the active rules in a fresh session on every call.

    The workflow engine uses this so each event sees the rules as currently
    committed.
    """

    def __init__(self, session_provider: Callable[[], Any]):
        """Initialize the source.

        Args:
            session_provider: Callable returning an async session context manager
        """
        self.session_provider = session_provider

    async def list_active_rules(self) -> List[WorkflowRule]:
        async with self.session_provider() as session:
            return await RuleRepository(session).list_active_rules()


def _stored_from_status(trigger: Trigger) -> Optional[str]:
    if trigger.from_status == ANY_STATUS:
        return None
    return trigger.from_status.value
