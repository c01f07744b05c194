"""REST API endpoints for workflow rule management and the activity log."""

from typing import Any
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.core.database import get_db
from dealflow.models.workflow import WorkflowExecution, WorkflowRule
from dealflow.repositories.execution_repository import ExecutionRepository
from dealflow.repositories.rule_repository import RuleRepository
from dealflow.rule_engine.errors import RuleNotFoundError, ValidationError
from dealflow.rule_engine.models import ANY_STATUS, DealStatus, format_status
from dealflow.rule_engine.validation import build_trigger, parse_actions
from dealflow.services.deal_store import updatable_deal_fields

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


class ActionPayload(BaseModel):
    """One action in stored form."""

    type: str = Field(..., description="create_task, send_notification, update_field or assign_broker")
    params: dict[str, Any] = Field(default_factory=dict)


class RuleCreateRequest(BaseModel):
    """Request model for creating a workflow rule."""

    name: str = Field(..., description="Rule name")
    description: str | None = Field(default=None)
    from_status: str | None = Field(default=None, description="Originating status; empty or 'any' for every status")
    to_status: str = Field(..., description="Status the rule reacts to")
    actions: list[ActionPayload] = Field(default_factory=list)
    is_active: bool = Field(default=True)


class RuleUpdateRequest(BaseModel):
    """Request model for a partial rule update."""

    name: str | None = None
    description: str | None = None
    from_status: str | None = None
    to_status: str | None = None
    actions: list[ActionPayload] | None = None
    is_active: bool | None = None


class ToggleRequest(BaseModel):
    is_active: bool


def get_rule_repository(db: AsyncSession = Depends(get_db)) -> RuleRepository:
    return RuleRepository(db, recognized_fields=updatable_deal_fields())


def _rule_to_dict(rule: WorkflowRule) -> dict[str, Any]:
    try:
        trigger_description = build_trigger(rule.from_status, rule.to_status).describe()
        action_descriptions = [action.describe() for action in parse_actions(rule.actions)]
    except ValidationError:
        trigger_description = None
        action_descriptions = []

    return {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "trigger": {
            "type": rule.trigger_type,
            "from_status": rule.from_status or ANY_STATUS,
            "to_status": rule.to_status,
        },
        "trigger_description": trigger_description,
        "actions": rule.actions,
        "action_descriptions": action_descriptions,
        "is_active": rule.is_active,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
        "updated_at": rule.updated_at.isoformat() if rule.updated_at else None,
    }


def _execution_to_dict(row: WorkflowExecution) -> dict[str, Any]:
    return {
        "id": row.id,
        "rule_id": row.workflow_rule_id,
        "deal_id": row.deal_id,
        "action_index": row.action_index,
        "action_type": row.action_type,
        "outcome": row.status,
        "error_kind": row.error_kind,
        "error_message": row.error_message,
        "from_status": row.from_status,
        "to_status": row.to_status,
        "executed_at": row.executed_at.isoformat() if row.executed_at else None,
    }


def _validation_error(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": "Invalid workflow rule", "errors": e.errors})


@router.get("/statuses")
async def list_statuses() -> dict[str, Any]:
    """List the deal statuses a trigger may use."""
    return {
        "statuses": [
            {"value": status.value, "label": format_status(status.value)}
            for status in DealStatus
        ]
    }


@router.get("/rules")
async def list_rules(repo: RuleRepository = Depends(get_rule_repository)) -> dict[str, Any]:
    """List all workflow rules, newest first."""
    rules = await repo.list_all()
    return {"rules": [_rule_to_dict(rule) for rule in rules], "count": len(rules)}


@router.get("/rules/{rule_id}")
async def get_rule(
    rule_id: str, repo: RuleRepository = Depends(get_rule_repository)
) -> dict[str, Any]:
    """Get one workflow rule.

    Raises:
        HTTPException: 404 if the rule is not found
    """
    rule = await repo.get_by_id(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Workflow rule '{rule_id}' not found")
    return _rule_to_dict(rule)


@router.post("/rules", status_code=201)
async def create_rule(
    request: RuleCreateRequest, repo: RuleRepository = Depends(get_rule_repository)
) -> dict[str, Any]:
    """Create a workflow rule.

    Raises:
        HTTPException: 400 listing every validation problem
    """
    try:
        rule = await repo.create(
            name=request.name,
            description=request.description,
            from_status=request.from_status,
            to_status=request.to_status,
            actions=[action.model_dump() for action in request.actions],
            is_active=request.is_active,
        )
    except ValidationError as e:
        raise _validation_error(e)

    return {"message": "Workflow created successfully", "rule": _rule_to_dict(rule)}


@router.patch("/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    request: RuleUpdateRequest,
    repo: RuleRepository = Depends(get_rule_repository),
) -> dict[str, Any]:
    """Partially update a workflow rule.

    Raises:
        HTTPException: 400 on validation failure, 404 if the rule is not found
    """
    patch: dict[str, Any] = {}
    for key in ("name", "to_status", "is_active"):
        value = getattr(request, key)
        if value is not None:
            patch[key] = value
    # Explicit nulls are meaningful for these two
    for key in ("description", "from_status"):
        if key in request.model_fields_set:
            patch[key] = getattr(request, key)
    if request.actions is not None:
        patch["actions"] = [action.model_dump() for action in request.actions]

    try:
        rule = await repo.update(rule_id, **patch)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise _validation_error(e)

    return {"message": "Workflow updated", "rule": _rule_to_dict(rule)}


@router.post("/rules/{rule_id}/toggle")
async def toggle_rule(
    rule_id: str,
    request: ToggleRequest,
    repo: RuleRepository = Depends(get_rule_repository),
) -> dict[str, Any]:
    """Activate or deactivate a workflow rule."""
    try:
        rule = await repo.set_active(rule_id, request.is_active)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Workflow updated", "rule": _rule_to_dict(rule)}


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str, repo: RuleRepository = Depends(get_rule_repository)
) -> dict[str, Any]:
    """Delete a workflow rule."""
    try:
        await repo.delete(rule_id)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Workflow deleted"}


@router.get("/executions")
async def list_executions(
    deal_id: str | None = None,
    rule_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """List workflow execution records, newest first."""
    rows = await ExecutionRepository(db).list_records(deal_id=deal_id, rule_id=rule_id, limit=limit)
    return {"executions": [_execution_to_dict(row) for row in rows], "count": len(rows)}
