"""Validation and (de)serialization of workflow triggers and actions.

Actions are stored as JSON objects of the form
``{"type": "create_task", "params": {"title": "...", ...}}``. Parsing turns
them into the typed action dataclasses and collects every problem found, so
the caller gets a single ValidationError listing all of them.
"""

from collections.abc import Collection, Iterable
from dataclasses import asdict
from typing import Any

from dealflow.rule_engine.errors import ValidationError
from dealflow.rule_engine.models import (
    ANY_STATUS,
    Action,
    ActionKind,
    AssignBroker,
    CreateTask,
    DealStatus,
    Priority,
    SendNotification,
    Trigger,
    UpdateField,
)

ACTION_TYPES = (CreateTask, SendNotification, UpdateField, AssignBroker)

# Ten years; larger offsets overflow datetime arithmetic.
MAX_DUE_IN_DAYS = 3650


def parse_status(value: Any, label: str) -> DealStatus:
    """Return the DealStatus for value or raise ValidationError."""
    if isinstance(value, DealStatus):
        return value
    try:
        return DealStatus(value)
    except ValueError:
        raise ValidationError(f"{label} '{value}' is not a recognized deal status") from None


def build_trigger(from_status: Any, to_status: Any) -> Trigger:
    """Build a trigger; an empty or missing from_status means any status."""
    errors = []
    if to_status in (None, "", ANY_STATUS):
        errors.append("to_status must be a concrete deal status")
        target = None
    else:
        try:
            target = parse_status(to_status, "to_status")
        except ValidationError as e:
            errors.extend(e.errors)
            target = None

    source: DealStatus | str = ANY_STATUS
    if from_status not in (None, "", ANY_STATUS):
        try:
            source = parse_status(from_status, "from_status")
        except ValidationError as e:
            errors.extend(e.errors)

    if errors:
        raise ValidationError(errors)
    return Trigger(to_status=target, from_status=source)


def _required_text(params: dict[str, Any], key: str, errors: list[str], prefix: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{prefix}: '{key}' is required")
        return ""
    return value.strip()


def _optional_bool(params: dict[str, Any], key: str, errors: list[str], prefix: str) -> bool:
    value = params.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        errors.append(f"{prefix}: '{key}' must be a boolean")
        return False
    return value


def _parse_create_task(params: dict[str, Any], errors: list[str], prefix: str) -> CreateTask:
    title = _required_text(params, "title", errors, prefix)

    description = params.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(f"{prefix}: 'description' must be a string")
        description = None

    priority = Priority.MEDIUM
    raw_priority = params.get("priority")
    if raw_priority not in (None, ""):
        try:
            priority = Priority(str(raw_priority).lower())
        except ValueError:
            errors.append(f"{prefix}: priority '{raw_priority}' must be one of low, medium, high")

    due_in_days = params.get("due_in_days", 0)
    if due_in_days is None:
        due_in_days = 0
    if (
        isinstance(due_in_days, bool)
        or not isinstance(due_in_days, int)
        or not 0 <= due_in_days <= MAX_DUE_IN_DAYS
    ):
        errors.append(f"{prefix}: 'due_in_days' must be an integer from 0 to {MAX_DUE_IN_DAYS}")
        due_in_days = 0

    return CreateTask(
        title=title,
        description=description or None,
        priority=priority,
        due_in_days=due_in_days,
    )


def _parse_send_notification(
    params: dict[str, Any], errors: list[str], prefix: str
) -> SendNotification:
    return SendNotification(
        title=_required_text(params, "title", errors, prefix),
        message=_required_text(params, "message", errors, prefix),
        notify_client=_optional_bool(params, "notify_client", errors, prefix),
        notify_broker=_optional_bool(params, "notify_broker", errors, prefix),
    )


def _parse_update_field(
    params: dict[str, Any],
    errors: list[str],
    prefix: str,
    recognized_fields: Collection[str] | None,
) -> UpdateField:
    field_name = _required_text(params, "field", errors, prefix)
    value = params.get("value")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{prefix}: 'value' is required")
        value = ""
    if field_name and recognized_fields is not None and field_name not in recognized_fields:
        errors.append(f"{prefix}: '{field_name}' is not an updatable deal field")
    return UpdateField(field=field_name, value=value)


def _parse_assign_broker(params: dict[str, Any], errors: list[str], prefix: str) -> AssignBroker:
    return AssignBroker(broker_id=_required_text(params, "broker_id", errors, prefix))


def _parse_one(
    data: Any,
    index: int,
    errors: list[str],
    recognized_fields: Collection[str] | None,
) -> Action | None:
    prefix = f"Action {index + 1}"

    if isinstance(data, ACTION_TYPES):
        data = serialize_action(data)
    if not isinstance(data, dict):
        errors.append(f"{prefix}: must be an object with 'type' and 'params'")
        return None

    raw_type = data.get("type")
    try:
        kind = ActionKind(raw_type)
    except ValueError:
        errors.append(f"{prefix}: unknown action type '{raw_type}'")
        return None

    params = data.get("params") or {}
    if not isinstance(params, dict):
        errors.append(f"{prefix}: 'params' must be an object")
        return None

    if kind is ActionKind.CREATE_TASK:
        return _parse_create_task(params, errors, prefix)
    if kind is ActionKind.SEND_NOTIFICATION:
        return _parse_send_notification(params, errors, prefix)
    if kind is ActionKind.UPDATE_FIELD:
        return _parse_update_field(params, errors, prefix, recognized_fields)
    return _parse_assign_broker(params, errors, prefix)


def parse_actions(
    data: Iterable[Any] | None,
    recognized_fields: Collection[str] | None = None,
) -> tuple[Action, ...]:
    """Parse and validate an ordered action list.

    Args:
        data: Stored action objects or action dataclasses
        recognized_fields: Deal fields an UpdateField may target; unchecked when None

    Returns:
        Tuple of typed actions in the given order

    Raises:
        ValidationError: If any action is malformed
    """
    if data is None:
        return ()
    if isinstance(data, (str, bytes, dict)):
        raise ValidationError("actions must be a list")

    errors: list[str] = []
    actions = []
    for index, item in enumerate(data):
        action = _parse_one(item, index, errors, recognized_fields)
        if action is not None:
            actions.append(action)

    if errors:
        raise ValidationError(errors)
    return tuple(actions)


def serialize_action(action: Action) -> dict[str, Any]:
    """Return the storage form of an action."""
    params = asdict(action)
    if isinstance(action, CreateTask):
        params["priority"] = action.priority.value
    return {"type": action.kind.value, "params": params}


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    return name.strip()
