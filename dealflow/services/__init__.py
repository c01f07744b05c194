"""Services backing the workflow engine's external capabilities."""

from dealflow.services.collaborators import InAppNotifier, SqlBrokerAssigner, SqlTaskCreator
from dealflow.services.deal_service import change_deal_status
from dealflow.services.deal_store import SqlDealStore, updatable_deal_fields
from dealflow.services.status_notifications import StatusChangeNotifier

__all__ = [
    "InAppNotifier",
    "SqlBrokerAssigner",
    "SqlTaskCreator",
    "change_deal_status",
    "SqlDealStore",
    "updatable_deal_fields",
    "StatusChangeNotifier",
]
