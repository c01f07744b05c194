"""Repository for the workflow activity log."""

from collections.abc import Callable
from typing import Any, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dealflow.models.workflow import WorkflowExecution
from dealflow.rule_engine.models import ExecutionRecord


class ExecutionRepository:
    """Append-only storage of execution records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, record: ExecutionRecord) -> WorkflowExecution:
        """Persist one execution record.

        Args:
            record: Record produced by the workflow engine

        Returns:
            The stored WorkflowExecution row
        """
        row = WorkflowExecution(
            workflow_rule_id=record.rule_id,
            deal_id=record.deal_id,
            action_index=record.action_index,
            action_type=record.action_type.value,
            status=record.outcome.value,
            error_kind=record.error_kind.value if record.error_kind else None,
            error_message=record.reason,
            from_status=record.from_status or None,
            to_status=record.to_status,
            executed_at=record.executed_at,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def list_records(
        self,
        deal_id: Optional[str] = None,
        rule_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[WorkflowExecution]:
        """List records, newest first, optionally filtered by deal or rule."""
        stmt = select(WorkflowExecution)
        if deal_id is not None:
            stmt = stmt.where(WorkflowExecution.deal_id == deal_id)
        if rule_id is not None:
            stmt = stmt.where(WorkflowExecution.workflow_rule_id == rule_id)
        stmt = stmt.order_by(WorkflowExecution.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SqlActivityLogger:
    """ActivityLogger writing each record in its own session."""

    def __init__(self, session_provider: Callable[[], Any]):
        self.session_provider = session_provider

    async def record(self, record: ExecutionRecord) -> None:
        async with self.session_provider() as session:
            await ExecutionRepository(session).add(record)
