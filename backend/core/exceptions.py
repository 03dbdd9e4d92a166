"""Custom exceptions for the workflow engine."""


class WorkflowEngineError(Exception):
    """Base exception for the workflow engine."""

    def __init__(self, message: str):
        """Initialize exception with message.

        Args:
            message: Exception message
        """
        self.message = message
        super().__init__(self.message)


class ConfigurationError(WorkflowEngineError):
    """A workflow definition cannot be run as configured."""

    def __init__(self, message: str = "Invalid workflow configuration"):
        super().__init__(message)


class NotFoundError(WorkflowEngineError):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ActivityTypeNotFoundError(NotFoundError):
    """The activity library has no activity registered under a name."""

    def __init__(self, activity_name: str):
        self.activity_name = activity_name
        super().__init__(f"Activity type '{activity_name}' is not registered")


class ConcurrencyError(WorkflowEngineError):
    """A workflow instance was modified by another caller since it was loaded."""

    def __init__(self, message: str = "Workflow instance was modified concurrently"):
        super().__init__(message)
