"""CRUD contract over the research ORM models."""

import logging
import uuid
from typing import Any, Optional, Union

from sqlalchemy import select

from seo_research.database import get_session
from seo_research.errors import EntryNotFoundError, InvalidTransitionError
from seo_research.models import Dataset, Insight, Query, QueryType, Status, Task
from seo_research.models.query import _utcnow

logger = logging.getLogger(__name__)

StatusLike = Union[Status, str]


class ResearchStore:
    """Create, update and read queries, tasks, datasets and insights.

    Every method opens its own session; returned objects are detached
    with their columns (and eager relationships) loaded.

    Terminal queries and tasks cannot change status again, and a task's
    provider id can be set once.
    """

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_query(self, query_type: Union[QueryType, str], parameters: dict[str, Any], owner_id: str) -> Query:
        query = Query(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            type=QueryType(query_type).value,
            parameters=parameters,
            status=Status.PENDING.value,
            progress=0,
        )
        with get_session() as session:
            session.add(query)
        logger.info("Created %s query %s for %s", query.type, query.id, owner_id)
        return query

    def get_query(self, query_id: str) -> Optional[Query]:
        with get_session() as session:
            return session.get(Query, query_id)

    def list_queries(self, owner_id: Optional[str] = None, limit: int = 50) -> list[Query]:
        """Most recent first."""
        stmt = select(Query).order_by(Query.created_at.desc()).limit(limit)
        if owner_id is not None:
            stmt = stmt.where(Query.owner_id == owner_id)
        with get_session() as session:
            return list(session.scalars(stmt))

    def update_query(
        self,
        query_id: str,
        status: Optional[StatusLike] = None,
        progress: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Query:
        """Apply the given changes.

        Raises:
            EntryNotFoundError: unknown query.
            InvalidTransitionError: the query is already terminal.
        """
        with get_session() as session:
            query = session.get(Query, query_id)
            if query is None:
                raise EntryNotFoundError(f"Query {query_id!r} not found")
            current = Status(query.status)
            if current.is_terminal and (status is not None or progress is not None):
                raise InvalidTransitionError(
                    f"Query {query_id} is already {current.value}"
                )
            if progress is not None:
                query.progress = max(0, min(100, int(progress)))
            if error is not None:
                query.error = error
            if status is not None:
                new_status = Status(status)
                query.status = new_status.value
                if new_status.is_terminal:
                    query.completed_at = _utcnow()
            return query

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        task_id: str,
        query_id: str,
        kind: str,
        parameters: dict[str, Any],
        provider_task_id: Optional[str] = None,
        status: StatusLike = Status.PENDING,
        cost: float = 0.0,
    ) -> Task:
        task = Task(
            id=task_id,
            query_id=query_id,
            kind=kind,
            parameters=parameters,
            provider_task_id=provider_task_id,
            status=Status(status).value,
            cost=cost,
        )
        with get_session() as session:
            session.add(task)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        with get_session() as session:
            return session.get(Task, task_id)

    def list_tasks(self, query_id: str) -> list[Task]:
        stmt = select(Task).where(Task.query_id == query_id).order_by(Task.created_at)
        with get_session() as session:
            return list(session.scalars(stmt))

    def update_task(
        self,
        task_id: str,
        status: Optional[StatusLike] = None,
        result: Optional[list[Any]] = None,
        error: Optional[str] = None,
        provider_task_id: Optional[str] = None,
        cost: Optional[float] = None,
    ) -> Task:
        """Apply the given changes.

        Raises:
            EntryNotFoundError: unknown task.
            InvalidTransitionError: status change on a terminal task, or a
                different provider id for a task that already has one.
        """
        with get_session() as session:
            task = session.get(Task, task_id)
            if task is None:
                raise EntryNotFoundError(f"Task {task_id!r} not found")
            if provider_task_id is not None and provider_task_id != task.provider_task_id:
                if task.provider_task_id:
                    raise InvalidTransitionError(
                        f"Task {task_id} already has provider id {task.provider_task_id}"
                    )
                task.provider_task_id = provider_task_id
            if status is not None:
                current = Status(task.status)
                new_status = Status(status)
                if current.is_terminal and new_status != current:
                    raise InvalidTransitionError(f"Task {task_id} is already {current.value}")
                task.status = new_status.value
                if new_status.is_terminal and task.completed_at is None:
                    task.completed_at = _utcnow()
            if result is not None:
                task.result = result
            if error is not None:
                task.error = error
            if cost is not None:
                task.cost = cost
            return task

    # ------------------------------------------------------------------
    # Datasets and insights (append-only)
    # ------------------------------------------------------------------

    def create_dataset(
        self,
        query_id: str,
        name: str,
        data_type: str,
        data: Any,
        task_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Dataset:
        dataset = Dataset(
            query_id=query_id,
            task_id=task_id,
            name=name,
            data_type=data_type,
            data=data,
            meta=metadata or {},
        )
        with get_session() as session:
            session.add(dataset)
        logger.info("Stored dataset %r (%s) for query %s", name, data_type, query_id)
        return dataset

    def list_datasets(self, query_id: str, data_type: Optional[str] = None) -> list[Dataset]:
        stmt = select(Dataset).where(Dataset.query_id == query_id).order_by(Dataset.id)
        if data_type is not None:
            stmt = stmt.where(Dataset.data_type == data_type)
        with get_session() as session:
            return list(session.scalars(stmt))

    def create_insight(
        self,
        query_id: str,
        analysis_type: str,
        content: dict[str, Any],
        job_id: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> Insight:
        insight = Insight(
            query_id=query_id,
            job_id=job_id,
            analysis_type=analysis_type,
            template_id=template_id,
            summary=content.get("summary", ""),
            content=content,
        )
        with get_session() as session:
            session.add(insight)
        return insight

    def list_insights(self, query_id: str) -> list[Insight]:
        stmt = select(Insight).where(Insight.query_id == query_id).order_by(Insight.id)
        with get_session() as session:
            return list(session.scalars(stmt))
