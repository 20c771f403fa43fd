"""Generic in-memory ledger of asynchronous jobs with wait/evict semantics."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from seo_research.errors import EntryNotFoundError, TransportError, WaitTimeoutError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LedgerEntry:
    """Fields every ledger entry carries; subclasses add their payload."""

    id: str
    status: str
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


EntryT = TypeVar("EntryT", bound=LedgerEntry)


class AsyncJobLedger(ABC, Generic[EntryT]):
    """Registry of outstanding jobs keyed by id.

    Subclasses decide how an entry advances (``_resolve``); the ledger
    provides lookup, ``wait_for_all``, eviction and stats on top.
    """

    terminal_statuses: frozenset[str] = frozenset({"completed", "failed"})

    def __init__(self, name: str, clock: Callable[[], datetime] = _utcnow):
        self._name = name
        self._clock = clock
        self._entries: dict[str, EntryT] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def _register(self, entry: EntryT) -> EntryT:
        self._entries[entry.id] = entry
        return entry

    def _require(self, entry_id: str) -> EntryT:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"{self._name}: unknown id {entry_id!r}")
        return entry

    def _mark_terminal(self, entry: EntryT, status: str, error: Optional[str] = None) -> bool:
        """Move ``entry`` to a terminal status; an entry already terminal is left as is."""
        if self.is_terminal(entry):
            return False
        entry.status = status
        entry.error = error
        entry.completed_at = self._clock()
        return True

    def get(self, entry_id: str) -> Optional[EntryT]:
        return self._entries.get(entry_id)

    def status(self, entry_id: str) -> Optional[str]:
        entry = self._entries.get(entry_id)
        return entry.status if entry else None

    def entries(self) -> list[EntryT]:
        return list(self._entries.values())

    def is_terminal(self, entry: EntryT) -> bool:
        return entry.status in self.terminal_statuses

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    @abstractmethod
    async def _resolve(self, entry_id: str) -> tuple[bool, Any]:
        """Advance one entry; return ``(done, outcome)``."""

    async def wait_for_all(
        self,
        entry_ids: Iterable[str],
        timeout: float,
        poll_interval: float,
    ) -> dict[str, Any]:
        """Resolve every id or raise.

        Each tick calls ``_resolve`` for the ids still outstanding, then
        sleeps ``poll_interval``. A ``TransportError`` on a tick is logged
        and retried next tick; other errors propagate. Raises
        :class:`WaitTimeoutError` once ``timeout`` seconds have passed with
        ids still unresolved. Never returns a partial map.
        """
        ids = list(dict.fromkeys(entry_ids))
        for entry_id in ids:
            self._require(entry_id)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        resolved: dict[str, Any] = {}

        while True:
            for entry_id in ids:
                if entry_id in resolved:
                    continue
                try:
                    done, outcome = await self._resolve(entry_id)
                except TransportError as exc:
                    logger.warning("%s: poll of %s failed, retrying: %s", self._name, entry_id, exc)
                    continue
                if done:
                    resolved[entry_id] = outcome

            if len(resolved) == len(ids):
                return {entry_id: resolved[entry_id] for entry_id in ids}

            remaining = deadline - loop.time()
            if remaining <= 0:
                pending = [entry_id for entry_id in ids if entry_id not in resolved]
                raise WaitTimeoutError(pending, timeout)
            await asyncio.sleep(min(poll_interval, remaining))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def evict_completed(self, older_than: timedelta) -> int:
        """Drop terminal entries that finished more than ``older_than`` ago."""
        cutoff = self._clock() - older_than
        stale = [
            entry_id for entry_id, entry in self._entries.items()
            if self.is_terminal(entry)
            and entry.completed_at is not None
            and entry.completed_at < cutoff
        ]
        for entry_id in stale:
            del self._entries[entry_id]
        if stale:
            logger.info("%s: evicted %d entries older than %s", self._name, len(stale), older_than)
        return len(stale)

    def stats(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for entry in self._entries.values():
            counts[entry.status] = counts.get(entry.status, 0) + 1
        return {"total": len(self._entries), "by_status": counts}
