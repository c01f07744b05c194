"""Deal status changes: commit the new status, then announce the transition."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.models.deal import Deal, DealActivityLog
from dealflow.rule_engine.errors import DealNotFoundError
from dealflow.rule_engine.event_emitter import DealEventEmitter
from dealflow.rule_engine.models import TransitionEvent
from dealflow.rule_engine.validation import parse_status

logger = logging.getLogger(__name__)


async def change_deal_status(
    session: AsyncSession,
    emitter: DealEventEmitter | None,
    deal_id: str,
    new_status: str,
) -> TransitionEvent:
    """Set a deal's status and emit the resulting transition event.

    The status write and its "status_change" activity log entry are
    committed together before any listener runs, and listener outcomes
    never affect them.

    Args:
        session: Database session
        emitter: Event emitter to notify, or None to skip workflows
        deal_id: Deal to update
        new_status: Target status

    Returns:
        The emitted TransitionEvent

    Raises:
        ValidationError: If new_status is not a recognized status
        DealNotFoundError: If the deal does not exist
    """
    status = parse_status(new_status, "status")

    deal = await session.get(Deal, deal_id)
    if deal is None:
        raise DealNotFoundError(deal_id)

    old_status = deal.status
    deal.status = status.value
    session.add(
        DealActivityLog(
            deal_id=deal_id,
            action="status_change",
            details={"from": old_status, "to": status.value},
        )
    )
    await session.commit()
    logger.info(f"Deal {deal_id} status changed: {old_status} -> {status.value}")

    event = TransitionEvent(
        deal_id=deal_id,
        from_status=old_status,
        to_status=status.value,
    )
    if emitter is not None:
        emitter.emit(event)
    return event
