"""HTTP client for the provider's task-based API (task_post / tasks_ready / task_get)."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import httpx

from seo_research.errors import ProviderError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.dataforseo.com"
USER_AGENT = "seo-research-orchestrator/1.0"


@dataclass
class ProviderTask:
    """One task entry inside a provider response envelope."""

    id: str
    status_code: int
    status_message: str = ""
    cost: float = 0.0
    result: Optional[list[Any]] = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ProviderTask":
        return cls(
            id=str(raw.get("id") or ""),
            status_code=int(raw.get("status_code") or 0),
            status_message=raw.get("status_message") or "",
            cost=float(raw.get("cost") or 0.0),
            result=raw.get("result"),
            data=raw.get("data") or {},
        )


@dataclass
class ProviderResponse:
    """Parsed response envelope: ``{status_code, status_message, cost, tasks: [...]}``."""

    status_code: int
    status_message: str = ""
    cost: float = 0.0
    tasks: list[ProviderTask] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ProviderResponse":
        if not isinstance(raw, dict):
            raise TransportError("Provider returned a non-object JSON body")
        return cls(
            status_code=int(raw.get("status_code") or 0),
            status_message=raw.get("status_message") or "",
            cost=float(raw.get("cost") or 0.0),
            tasks=[ProviderTask.from_dict(t) for t in raw.get("tasks") or []],
            raw=raw,
        )

    @property
    def first_task(self) -> Optional[ProviderTask]:
        return self.tasks[0] if self.tasks else None


class TaskClient:
    """Basic-auth async client for a task-based analysis provider.

    Completion and failure are decided purely by status codes passed in
    at construction; the client attaches no other meaning to them.

    Usage::

        client = TaskClient(login="me", password="secret")
        response = await client.submit("/v3/serp/google/organic/task_post", [payload])
        ready = await client.poll("/v3/serp/google/organic/tasks_ready")
        result = await client.fetch("/v3/serp/google/organic/task_get/advanced", task_id)
        await client.close()
    """

    def __init__(
        self,
        login: Optional[str] = None,
        password: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        success_code: int = 20000,
        error_threshold: int = 40000,
        pending_codes: Iterable[int] = (),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._login = login or os.getenv("DATAFORSEO_LOGIN", "")
        self._password = password or os.getenv("DATAFORSEO_PASSWORD", "")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.success_code = success_code
        self.error_threshold = error_threshold
        self.pending_codes = frozenset(pending_codes)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self._login or not self._password:
            logger.warning(
                "DataForSEO credentials not set (DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD); "
                "requests will be rejected by the provider."
            )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=httpx.BasicAuth(self._login, self._password),
                headers={"User-Agent": USER_AGENT, "Content-Type": "application/json"},
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # Status classification
    # ------------------------------------------------------------------

    def is_complete(self, task: ProviderTask) -> bool:
        return task.status_code == self.success_code

    def is_error(self, task: ProviderTask) -> bool:
        return task.status_code >= self.error_threshold and task.status_code not in self.pending_codes

    def is_pending(self, task: ProviderTask) -> bool:
        return not self.is_complete(task) and not self.is_error(task)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, endpoint: str, payload: list[dict[str, Any]]) -> ProviderResponse:
        """POST a batch of task definitions to ``endpoint``."""
        if not payload:
            raise ValueError("submit() requires at least one task payload")
        return await self._request("POST", endpoint, json=payload)

    async def poll(self, endpoint: str) -> ProviderResponse:
        """GET the list of tasks that are ready for collection."""
        return await self._request("GET", endpoint)

    async def fetch(self, endpoint: str, provider_task_id: str) -> ProviderResponse:
        """GET the result of one task from ``{endpoint}/{provider_task_id}``."""
        return await self._request("GET", f"{endpoint.rstrip('/')}/{provider_task_id}")

    async def account_info(self) -> dict[str, Any]:
        """Return the provider account record (balance, limits)."""
        response = await self._request("GET", "/v3/user_data/info")
        task = response.first_task
        if task is None or not task.result:
            return {}
        return task.result[0]

    async def health_check(self) -> bool:
        """True if the provider answers the account endpoint with a success code."""
        try:
            response = await self._request("GET", "/v3/user_data/info")
        except ProviderError as exc:
            logger.warning("Provider health check failed: %s", exc)
            return False
        return response.status_code == self.success_code

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[list[dict[str, Any]]] = None,
    ) -> ProviderResponse:
        client = self._get_client()
        logger.debug("Provider %s %s", method, endpoint)
        try:
            response = await client.request(method, endpoint, json=json)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out after {self._timeout:g}s calling {endpoint}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error calling {endpoint}: {exc}") from exc

        if response.status_code >= 400:
            raise ProviderError(
                f"Provider HTTP {response.status_code} for {endpoint}",
                status_code=response.status_code,
                status_message=response.text[:200],
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Provider returned non-JSON body for {endpoint}") from exc

        parsed = ProviderResponse.from_dict(body)
        logger.debug(
            "Provider %s %s -> %d %s (cost=%.4f)",
            method, endpoint, parsed.status_code, parsed.status_message, parsed.cost,
        )
        if parsed.status_code >= self.error_threshold:
            raise ProviderError(
                f"Provider rejected request to {endpoint}: {parsed.status_message}",
                status_code=parsed.status_code,
                status_message=parsed.status_message,
            )
        return parsed
