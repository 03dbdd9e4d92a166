"""Workflow definition persistence models."""

from typing import Optional

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import BaseModel, TimestampedModel


class WorkflowDefinitionModel(BaseModel):
    """A stored workflow definition.

    Attributes:
        id: Definition ID (same as WorkflowDefinition.id)
        name: Definition name
        definition: JSON document of the full graph
        version: Bumped on every save
        is_enabled: Whether events may start new instances
    """

    __tablename__ = "workflow_definitions"

    name: Mapped[str] = mapped_column(nullable=False, default="", index=True)
    definition: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(default=1)
    is_enabled: Mapped[bool] = mapped_column(default=True, index=True)

    start_activities: Mapped[list["WorkflowStartActivityModel"]] = relationship(
        "WorkflowStartActivityModel",
        back_populates="workflow_definition",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class WorkflowStartActivityModel(TimestampedModel):
    """Index of start activity types, used to route events to definitions."""

    __tablename__ = "workflow_start_activities"

    definition_id: Mapped[str] = mapped_column(
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_id: Mapped[str] = mapped_column(nullable=False)
    activity_name: Mapped[str] = mapped_column(nullable=False, index=True)

    workflow_definition: Mapped["WorkflowDefinitionModel"] = relationship(
        "WorkflowDefinitionModel", back_populates="start_activities", lazy="noload"
    )
