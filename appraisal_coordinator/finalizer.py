"""
Appraisal Coordinator — Workflow Finalizer

Computes the terminal status of a drained workflow, retires its state
from the store and publishes the WorkflowResult to listeners. A result
is published at most once per workflow.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from appraisal_coordinator.store import WorkflowStateStore
from appraisal_coordinator.types import (
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
)

logger = logging.getLogger("appraisal_ai.finalizer")

WorkflowListener = Callable[[WorkflowResult], Any]


def compute_workflow_status(completed: set[str], failed: set[str]) -> WorkflowStatus:
    """
    completed, no failures  → COMPLETED
    some of each            → PARTIAL
    failures only           → FAILED
    """
    if not failed:
        return WorkflowStatus.COMPLETED
    if completed:
        return WorkflowStatus.PARTIAL
    return WorkflowStatus.FAILED


class Finalizer:

    def __init__(self, store: WorkflowStateStore):
        self.store = store
        self._listeners: list[WorkflowListener] = []

    def add_listener(self, listener: WorkflowListener) -> None:
        self._listeners.append(listener)

    def finalize(
        self,
        state: WorkflowState,
        extra_metadata: dict[str, Any] | None = None,
    ) -> WorkflowResult | None:
        """
        Build and publish the WorkflowResult for `state`.

        Returns None if the workflow was already finalized.
        """
        with state.lock:
            status = compute_workflow_status(state.completed, state.failed)
            result = WorkflowResult(
                workflow_id=state.workflow_id,
                status=status,
                results=dict(state.results),
                elapsed=state.elapsed(),
                metadata={
                    **state.workflow.metadata,
                    "rounds": state.rounds,
                    "completed_tasks": sorted(state.completed, key=state.index.get),
                    "failed_tasks": sorted(state.failed, key=state.index.get),
                    **(extra_metadata or {}),
                },
            )

        if not self.store.finish(result):
            logger.warning("Workflow %s already finalized, not publishing again",
                           state.workflow_id)
            return None

        logger.info(
            "Finalized workflow %s (%s): %s, %d completed, %d failed",
            state.workflow.name, state.workflow_id, status.value,
            len(state.completed), len(state.failed),
        )
        self._publish(result)
        return result

    def _publish(self, result: WorkflowResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Workflow listener failed for %s", result.workflow_id)
