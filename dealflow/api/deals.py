"""REST API endpoint for deal status changes."""

from typing import Any
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dealflow.core.database import get_db
from dealflow.rule_engine.errors import DealNotFoundError, ValidationError
from dealflow.rule_engine.event_emitter import DealEventEmitter
from dealflow.services.deal_service import change_deal_status

router = APIRouter(prefix="/api/deals", tags=["deals"])

# Initialized in main.py
_event_emitter: DealEventEmitter | None = None


def init_deals_api(emitter: DealEventEmitter | None):
    """Set the emitter status changes are announced on."""
    global _event_emitter
    _event_emitter = emitter


def get_event_emitter() -> DealEventEmitter:
    """Get the event emitter.

    Raises:
        HTTPException: If the emitter is not initialized
    """
    if _event_emitter is None:
        raise HTTPException(status_code=500, detail="Workflow engine not initialized")
    return _event_emitter


class StatusChangeRequest(BaseModel):
    status: str = Field(..., description="New deal status")


@router.post("/{deal_id}/status")
async def update_deal_status(
    deal_id: str,
    request: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    emitter: DealEventEmitter = Depends(get_event_emitter),
) -> dict[str, Any]:
    """Change a deal's status and trigger workflow automation.

    Workflows run in the background; their outcome never changes this
    response.

    Raises:
        HTTPException: 400 for an unknown status, 404 for an unknown deal
    """
    try:
        event = await change_deal_status(db, emitter, deal_id, request.status)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DealNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "message": "Deal status updated successfully",
        "deal_id": event.deal_id,
        "from_status": event.from_status,
        "to_status": event.to_status,
    }
