# Database models
from dealflow.models.workflow import WorkflowRule, WorkflowExecution
from dealflow.models.deal import AutomatedTask, Deal, DealActivityLog, Notification, Profile

__all__ = [
    "WorkflowRule",
    "WorkflowExecution",
    "AutomatedTask",
    "Deal",
    "DealActivityLog",
    "Notification",
    "Profile",
]
