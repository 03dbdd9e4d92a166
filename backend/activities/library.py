"""
Activity Library: central catalog of all available activity types.

Maintains a mapping of activity type names to their implementations
and builds configured activity instances for workflow contexts.
"""

from typing import Any, Dict, Optional, Type

from activities.base import Activity
from activities.implementations.control import CONTROL_ACTIVITY_TYPES
from activities.implementations.events import EVENT_ACTIVITY_TYPES
from core.exceptions import ActivityTypeNotFoundError


class ActivityLibrary:
    """Central registry for all activity type implementations."""

    def __init__(self, register_builtins: bool = True):
        self._activities: Dict[str, Type[Activity]] = {}
        if register_builtins:
            self._register_builtin_activities()

    def _register_builtin_activities(self):
        """Register all built-in activity types."""
        for activity_class in CONTROL_ACTIVITY_TYPES.values():
            self.register(activity_class)

        for activity_class in EVENT_ACTIVITY_TYPES.values():
            self.register(activity_class)

    def register(self, activity_class: Type[Activity], name: Optional[str] = None):
        """Register an activity type under its name (or an explicit one)."""
        self._activities[name or activity_class.name] = activity_class

    def get(self, name: str) -> Optional[Type[Activity]]:
        """Get an activity class by type name."""
        return self._activities.get(name)

    def get_activity_by_name(self, name: str) -> Optional[Activity]:
        """Get an unconfigured activity instance, or None if the type is unknown."""
        activity_class = self.get(name)
        if activity_class:
            return activity_class()
        return None

    def instantiate(self, name: str, properties: Optional[Dict[str, Any]] = None) -> Activity:
        """Create an activity configured with definition-time properties."""
        activity_class = self.get(name)
        if activity_class is None:
            raise ActivityTypeNotFoundError(name)
        return activity_class(properties or {})

    def list_all(self) -> list:
        """List all registered activity types with metadata."""
        return [
            {
                "name": name,
                "display_name": cls.display_name,
                "description": cls.description,
                "category": cls.category,
                "is_event": cls().is_event(),
                "properties_schema": cls.get_properties_schema(),
            }
            for name, cls in self._activities.items()
        ]

    @property
    def available_types(self) -> list:
        return list(self._activities.keys())


# Singleton
_library: Optional[ActivityLibrary] = None


def get_activity_library() -> ActivityLibrary:
    """Get or create the singleton activity library."""
    global _library
    if _library is None:
        _library = ActivityLibrary()
    return _library
