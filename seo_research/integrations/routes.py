"""Task kinds and the endpoint routes each adapter registers for them."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class TaskKind(str, Enum):
    """Every kind of provider work the orchestrator can submit."""

    SERP_ORGANIC = "serp_organic"
    SERP_MAPS = "serp_maps"
    KEYWORDS_VOLUME = "keywords_volume"
    KEYWORDS_TRENDS = "keywords_trends"
    KEYWORDS_IDEAS = "keywords_ideas"
    COMPETITORS = "competitors"
    RANKED_KEYWORDS = "ranked_keywords"
    KEYWORD_SUGGESTIONS = "keyword_suggestions"
    RELATED_KEYWORDS = "related_keywords"
    HISTORICAL_SERPS = "historical_serps"


PayloadBuilder = Callable[[dict[str, Any]], list[dict[str, Any]]]


@dataclass(frozen=True)
class EndpointRoute:
    """Where a task kind is posted, listed and collected.

    ``base`` is the endpoint family (``/v3/serp/google/organic``);
    ``result_mode`` is the optional ``task_get`` flavour (``advanced``).
    """

    kind: TaskKind
    base: str
    build_payload: PayloadBuilder
    result_mode: str = ""

    @property
    def post_endpoint(self) -> str:
        return f"{self.base}/task_post"

    @property
    def ready_endpoint(self) -> str:
        return f"{self.base}/tasks_ready"

    @property
    def get_endpoint(self) -> str:
        if self.result_mode:
            return f"{self.base}/task_get/{self.result_mode}"
        return f"{self.base}/task_get"
