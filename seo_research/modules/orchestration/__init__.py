"""Orchestration module -- async job ledger and the provider task orchestrator."""

from seo_research.modules.orchestration.ledger import AsyncJobLedger, LedgerEntry
from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator, TaskRecord

__all__ = ["AsyncJobLedger", "LedgerEntry", "TaskOrchestrator", "TaskRecord"]
