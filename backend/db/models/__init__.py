"""Database models for the workflow engine.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.workflow_definition import WorkflowDefinitionModel, WorkflowStartActivityModel
from db.models.workflow_instance import AwaitingActivityModel, WorkflowInstanceModel

__all__ = [
    "WorkflowDefinitionModel",
    "WorkflowStartActivityModel",
    "WorkflowInstanceModel",
    "AwaitingActivityModel",
]
