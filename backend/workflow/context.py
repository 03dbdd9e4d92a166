"""Execution contexts.

A WorkflowContext binds one definition, one instance and the runtime
activity behaviors built for every node. It is created fresh for each
start or resume call and never persisted; only the instance record it
wraps is.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from activities.base import Activity
from workflow.models import ActivityRecord, WorkflowDefinition, WorkflowInstanceRecord, WorkflowState

logger = structlog.get_logger(__name__)

_UNSET = object()


class CancellationFlag:
    """Shared flag handed to every recipient of a lifecycle broadcast.

    Checked once, after the whole broadcast completed.
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ActivityContext:
    """One activity record paired with its runtime behavior."""

    record: ActivityRecord
    activity: Activity


# ─── Expression Evaluator ─────────────────────────────────────

class _DotDict(dict):
    """Dict that supports attribute-style access for eval expressions."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No key '{name}'")

    def __setattr__(self, name, value):
        self[name] = value


def _make_dot_dict(obj, _depth=0, _max_depth=50):
    """Recursively convert dicts to _DotDict for eval-friendly access."""
    if _depth >= _max_depth:
        return obj
    if isinstance(obj, dict) and not isinstance(obj, _DotDict):
        return _DotDict({k: _make_dot_dict(v, _depth + 1, _max_depth) for k, v in obj.items()})
    elif isinstance(obj, list):
        return [_make_dot_dict(item, _depth + 1, _max_depth) for item in obj]
    return obj


class ExpressionEvaluator:
    """Evaluates template expressions like {{ input.approved }}.

    Supports:
    - Input references: {{ input.order_id }}
    - Variable references: {{ variables.status }}
    - Correlation id: {{ correlation_id }}
    - Comparisons: {{ input.amount > 100 }}
    - Builtins: not, len, True, False, None
    """

    def evaluate(self, expression: Any, context: "WorkflowContext", default: Any = _UNSET) -> Any:
        """Evaluate a template expression against the workflow context.

        An expression that fails to evaluate is logged and yields default,
        or the expression text itself when no default is given.
        """
        if not isinstance(expression, str):
            return expression

        expr = expression.strip()
        if expr.startswith("{{") and expr.endswith("}}"):
            expr = expr[2:-2].strip()
        elif "{{" not in expr:
            return expression  # Not a template expression

        namespace = _DotDict({
            "input": _make_dot_dict(context.input),
            "variables": _make_dot_dict(context.variables),
            "correlation_id": context.correlation_id,
        })

        # Try simple dot-notation path first (fast path)
        try:
            return self._resolve_path(expr, namespace)
        except (KeyError, ValueError, IndexError):
            pass

        safe_builtins = {
            "True": True, "False": False, "None": None,
            "len": len, "int": int, "float": float, "str": str,
            "bool": bool, "list": list, "abs": abs,
            "min": min, "max": max,
        }
        try:
            return eval(expr, {"__builtins__": safe_builtins}, namespace)
        except Exception as e:
            logger.warning("Expression eval failed", expression=expr, error=str(e))
            return expression if default is _UNSET else default

    @staticmethod
    def _resolve_path(path: str, namespace: dict) -> Any:
        """Resolve a dot-notation path like 'input.order.id'."""
        if any(c in path for c in "[]()!=<>+-*/ "):
            raise ValueError("Not a simple dot path")

        current: Any = namespace
        for part in path.split("."):
            if isinstance(current, dict):
                if part not in current:
                    raise KeyError(f"Cannot resolve '{part}' in path '{path}'")
                current = current[part]
            elif isinstance(current, list):
                current = current[int(part)]
            else:
                raise KeyError(f"Cannot resolve '{part}' in path '{path}'")
        return current

    def resolve_properties(self, properties: dict, context: "WorkflowContext") -> dict:
        """Recursively resolve all template expressions in a property bag."""
        resolved = {}
        for key, value in properties.items():
            if isinstance(value, str):
                resolved[key] = self.evaluate(value, context)
            elif isinstance(value, dict):
                resolved[key] = self.resolve_properties(value, context)
            elif isinstance(value, list):
                resolved[key] = [
                    self.evaluate(v, context) if isinstance(v, str)
                    else self.resolve_properties(v, context) if isinstance(v, dict)
                    else v
                    for v in value
                ]
            else:
                resolved[key] = value
        return resolved


# ─── Workflow Context ─────────────────────────────────────────

@dataclass
class WorkflowContext:
    """Per-execution aggregate of definition, instance and activities."""

    definition: WorkflowDefinition
    instance: WorkflowInstanceRecord
    activities: List[ActivityContext] = field(default_factory=list)
    evaluator: ExpressionEvaluator = field(default_factory=ExpressionEvaluator)
    # Free-form bag for context providers and activities.
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> WorkflowState:
        return self.instance.state

    @property
    def input(self) -> Dict[str, Any]:
        return self.instance.state.input

    @property
    def variables(self) -> Dict[str, Any]:
        return self.instance.state.variables

    @property
    def correlation_id(self) -> Optional[str]:
        return self.instance.correlation_id

    def get_activity(self, activity_id: str) -> Optional[ActivityContext]:
        for activity_context in self.activities:
            if activity_context.record.id == activity_id:
                return activity_context
        return None

    def evaluate(self, expression: Any, default: Any = _UNSET) -> Any:
        return self.evaluator.evaluate(expression, self, default)

    def resolve_properties(self, properties: dict) -> dict:
        return self.evaluator.resolve_properties(properties, self)


class WorkflowContextProvider(ABC):
    """Hook for configuring every newly built workflow context."""

    @abstractmethod
    def configure(self, context: WorkflowContext) -> None:
        ...
