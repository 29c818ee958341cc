"""
Appraisal Coordinator — Workflow State Store

In-memory table of active workflow states plus a bounded history of
finished workflow results. A state is added on submission and removed
exactly once, at finalization.
"""

from __future__ import annotations

import threading
from collections import OrderedDict

from appraisal_coordinator.errors import DuplicateWorkflowError
from appraisal_coordinator.types import (
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)


class WorkflowStateStore:

    def __init__(self, history_limit: int = 100):
        self.history_limit = history_limit
        self._active: dict[str, WorkflowState] = {}
        self._history: OrderedDict[str, WorkflowResult] = OrderedDict()
        self._lock = threading.Lock()

    # ─── Active table ────────────────────────────────────────────────

    def add(self, state: WorkflowState) -> None:
        with self._lock:
            if state.workflow_id in self._active:
                raise DuplicateWorkflowError(
                    f"Workflow {state.workflow_id} is already active"
                )
            # A resubmitted id supersedes its old result.
            self._history.pop(state.workflow_id, None)
            self._active[state.workflow_id] = state

    def get(self, workflow_id: str) -> WorkflowState | None:
        with self._lock:
            return self._active.get(workflow_id)

    def discard(self, workflow_id: str) -> None:
        """Drop an active state that never started running."""
        with self._lock:
            self._active.pop(workflow_id, None)

    def active_ids(self) -> list[str]:
        with self._lock:
            return list(self._active)

    def snapshot(self, workflow_id: str) -> WorkflowResult | None:
        """
        Progress view of an active workflow.

        Status is always PARTIAL while the workflow is running.
        """
        state = self.get(workflow_id)
        if state is None:
            return None
        with state.lock:
            return WorkflowResult(
                workflow_id=workflow_id,
                status=WorkflowStatus.PARTIAL,
                results=dict(state.results),
                elapsed=state.elapsed(),
                metadata={
                    **state.workflow.metadata,
                    "rounds": state.rounds,
                    "pending": len(state.pending),
                    "ready": len(state.ready),
                    "completed_tasks": len(state.completed),
                    "failed_tasks": len(state.failed),
                },
            )

    # ─── Finalization ────────────────────────────────────────────────

    def finish(self, result: WorkflowResult) -> bool:
        """
        Move a workflow from the active table into history.

        Returns False if the workflow was not active (already finished),
        so callers can emit the result at most once.
        """
        with self._lock:
            if self._active.pop(result.workflow_id, None) is None:
                return False
            if self.history_limit > 0:
                self._history[result.workflow_id] = result
                while len(self._history) > self.history_limit:
                    self._history.popitem(last=False)
            return True

    def get_result(self, workflow_id: str) -> WorkflowResult | None:
        with self._lock:
            return self._history.get(workflow_id)

    def history(self, limit: int | None = None) -> list[WorkflowResult]:
        """Finished results, most recent first."""
        with self._lock:
            results = list(reversed(self._history.values()))
        return results if limit is None else results[:limit]
