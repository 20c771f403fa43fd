"""Processed-result snapshots and AI insights."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seo_research.database import Base

if TYPE_CHECKING:
    from seo_research.models.query import Query, Task


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dataset(Base):
    """Immutable named snapshot of analysed results, attached to a task."""

    __tablename__ = "research_datasets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("research_tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    data_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    query: Mapped["Query"] = relationship(back_populates="datasets")
    task: Mapped[Optional["Task"]] = relationship(back_populates="datasets")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "task_id": self.task_id,
            "name": self.name,
            "data_type": self.data_type,
            "data": self.data,
            "metadata": self.meta or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Dataset id={self.id} type={self.data_type} name={self.name!r}>"


class Insight(Base):
    """AI-generated summary of a query's datasets."""

    __tablename__ = "research_insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    analysis_type: Mapped[str] = mapped_column(String(100), nullable=False)
    template_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    query: Mapped["Query"] = relationship(back_populates="insights")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "job_id": self.job_id,
            "analysis_type": self.analysis_type,
            "template_id": self.template_id,
            "summary": self.summary,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Insight id={self.id} query={self.query_id} type={self.analysis_type}>"
