"""Default wiring of the workflow manager to the SQL stores."""

from typing import Optional

import structlog

from activities.library import ActivityLibrary, get_activity_library
from app.config import get_settings
from db.database import create_db_engine, create_session_factory
from services.definition_service import SqlWorkflowDefinitionStore
from services.instance_service import SqlWorkflowInstanceStore
from workflow.manager import WorkflowManager

logger = structlog.get_logger(__name__)

_manager: Optional[WorkflowManager] = None


def build_workflow_manager(
    session_factory,
    activity_library: Optional[ActivityLibrary] = None,
) -> WorkflowManager:
    """Create a manager backed by SQL stores on the given session factory."""
    return WorkflowManager(
        activity_library=activity_library or get_activity_library(),
        definition_store=SqlWorkflowDefinitionStore(session_factory),
        instance_store=SqlWorkflowInstanceStore(session_factory),
    )


def get_workflow_manager() -> WorkflowManager:
    """Get or create the singleton WorkflowManager using settings.DATABASE_URL."""
    global _manager
    if _manager is None:
        engine = create_db_engine()
        _manager = build_workflow_manager(create_session_factory(engine))
        logger.info("Workflow manager initialized", database=get_settings().safe_database_url)
    return _manager
