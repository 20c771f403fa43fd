"""Research query and provider task SQLAlchemy models."""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seo_research.database import Base

if TYPE_CHECKING:
    from seo_research.models.dataset import Dataset, Insight


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryType(str, Enum):
    KEYWORD_DISCOVERY = "keyword_discovery"
    SERP_ANALYSIS = "serp_analysis"
    COMPETITOR_RESEARCH = "competitor_research"


class Status(str, Enum):
    """Lifecycle shared by queries and their tasks."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.FAILED)


class Query(Base):
    """One research request and its progress."""

    __tablename__ = "research_queries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(50), default=Status.PENDING.value, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    tasks: Mapped[list["Task"]] = relationship(
        back_populates="query", cascade="all, delete-orphan", lazy="selectin",
        order_by="Task.created_at",
    )
    datasets: Mapped[list["Dataset"]] = relationship(
        back_populates="query", cascade="all, delete-orphan", lazy="selectin",
        order_by="Dataset.id",
    )
    insights: Mapped[list["Insight"]] = relationship(
        back_populates="query", cascade="all, delete-orphan", lazy="selectin",
        order_by="Insight.id",
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type": self.type,
            "parameters": self.parameters,
            "status": self.status,
            "progress": self.progress,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return f"<Query id={self.id} type={self.type} status={self.status} progress={self.progress}>"


class Task(Base):
    """One unit of provider work belonging to a query.

    ``id`` is the orchestrator's internal task id, so rows and in-memory
    ledger entries share a key.
    """

    __tablename__ = "research_tasks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    query_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=Status.PENDING.value, nullable=False)
    parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    provider_task_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    cost: Mapped[float] = mapped_column(Float, default=0.0)
    result: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    query: Mapped["Query"] = relationship(back_populates="tasks")
    datasets: Mapped[list["Dataset"]] = relationship(back_populates="task", lazy="selectin")

    def to_dict(self, include_result: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "query_id": self.query_id,
            "kind": self.kind,
            "status": self.status,
            "parameters": self.parameters,
            "provider_task_id": self.provider_task_id,
            "cost": self.cost,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_result:
            data["result"] = self.result
        return data

    def __repr__(self) -> str:
        return f"<Task id={self.id} kind={self.kind} status={self.status}>"
