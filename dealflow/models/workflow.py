# dealflow/models/workflow.py
import uuid
from datetime import datetime
from typing import Any
from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from dealflow.core.database import Base, utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class WorkflowRule(Base):
    """A status-change automation rule: trigger plus ordered actions."""
    __tablename__ = "workflow_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger_type: Mapped[str] = mapped_column(String(50), default="status_change", nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)  # NULL means any
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)  # [{"type", "params"}]
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def __init__(self, **kwargs):
        if 'is_active' not in kwargs:
            kwargs['is_active'] = True
        if 'trigger_type' not in kwargs:
            kwargs['trigger_type'] = "status_change"
        if 'actions' not in kwargs:
            kwargs['actions'] = []
        super().__init__(**kwargs)


class WorkflowExecution(Base):
    """Audit row for one attempted workflow action."""
    __tablename__ = "workflow_executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_rule_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    deal_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    action_index: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # success/failed
    error_kind: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)  # triggering transition
    to_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
