"""
Workflow instance persistence models.

These tables are the durable checkpoint of suspended workflows:
- workflow_instances: serialized state + optimistic version (one per instance)
- awaiting_activities: activities an instance is suspended on (many per instance)
"""

from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import TimestampedModel


class WorkflowInstanceModel(TimestampedModel):
    """
    Persisted workflow instance.

    Rows exist only while the instance awaits at least one activity;
    completed instances are deleted.
    """

    __tablename__ = "workflow_instances"

    definition_id: Mapped[str] = mapped_column(
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    correlation_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    state: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    awaiting_activities: Mapped[list["AwaitingActivityModel"]] = relationship(
        "AwaitingActivityModel",
        back_populates="workflow_instance",
        cascade="all, delete-orphan",
        order_by="AwaitingActivityModel.position",
        lazy="selectin",
    )


class AwaitingActivityModel(TimestampedModel):
    """
    Suspension marker.

    Stores the activity type name so incoming events can be matched
    without loading the definition.
    """

    __tablename__ = "awaiting_activities"

    instance_id: Mapped[str] = mapped_column(
        ForeignKey("workflow_instances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_id: Mapped[str] = mapped_column(nullable=False)
    activity_name: Mapped[str] = mapped_column(nullable=False, index=True)
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    workflow_instance: Mapped["WorkflowInstanceModel"] = relationship(
        "WorkflowInstanceModel", back_populates="awaiting_activities", lazy="noload"
    )

    __table_args__ = (
        Index("ix_awaiting_name_instance", "activity_name", "instance_id"),
    )
