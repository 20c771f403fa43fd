"""SQLAlchemy ORM models: import every model so Base.metadata is populated."""

from seo_research.models.query import (
    Query,
    QueryType,
    Status,
    Task,
)
from seo_research.models.dataset import (
    Dataset,
    Insight,
)

__all__ = [
    "Query",
    "QueryType",
    "Status",
    "Task",
    "Dataset",
    "Insight",
]
