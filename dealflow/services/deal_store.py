"""Deal store: party lookup and generic field writes for workflow actions."""

import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import inspect, select

from dealflow.models.deal import Deal, Profile
from dealflow.rule_engine.errors import ExecutionError
from dealflow.rule_engine.models import DealParties, DealStatus

logger = logging.getLogger(__name__)

# Columns a workflow may never overwrite
PROTECTED_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})


def updatable_deal_fields() -> frozenset[str]:
    """Return the deal columns an UpdateField action may target."""
    columns = {column.key for column in inspect(Deal).column_attrs}
    return frozenset(columns - PROTECTED_FIELDS)


class SqlDealStore:
    """DealDirectory and DealFieldWriter over the deals/profiles tables."""

    def __init__(self, session_provider: Callable[[], Any]):
        """Initialize the store.

        Args:
            session_provider: Callable returning an async session context manager
        """
        self.session_provider = session_provider
        self.fields = updatable_deal_fields()

    def recognized_fields(self) -> frozenset[str]:
        return self.fields

    async def get_parties(self, deal_id: str) -> DealParties | None:
        """Return the deal's client and that client's assigned broker."""
        async with self.session_provider() as session:
            result = await session.execute(
                select(Deal.user_id, Profile.assigned_broker)
                .join(Profile, Profile.id == Deal.user_id, isouter=True)
                .where(Deal.id == deal_id)
            )
            row = result.one_or_none()
        if row is None:
            return None
        return DealParties(client_id=row[0], broker_id=row[1])

    async def update_field(self, deal_id: str, field: str, value: str) -> None:
        """Write value to a deal column.

        Raises:
            ExecutionError: INVALID_FIELD for unknown fields or values the
                column cannot hold, NOT_FOUND for unknown deals
        """
        if field not in self.fields:
            raise ExecutionError.invalid_field(f"'{field}' is not an updatable deal field")

        coerced = self._coerce(field, value)

        async with self.session_provider() as session:
            deal = await session.get(Deal, deal_id)
            if deal is None:
                raise ExecutionError.not_found(f"Deal '{deal_id}' not found")
            setattr(deal, field, coerced)
            await session.commit()
        logger.info(f"Deal {deal_id}: set {field} = {value!r}")

    def _coerce(self, field: str, value: str) -> Any:
        if field == "amount":
            try:
                return Decimal(value)
            except InvalidOperation:
                raise ExecutionError.invalid_field(f"'{value}' is not a valid amount") from None
        if field == "status":
            try:
                return DealStatus(value).value
            except ValueError:
                raise ExecutionError.invalid_field(f"'{value}' is not a recognized deal status") from None
        return value
