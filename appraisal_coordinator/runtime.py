"""
Appraisal Coordinator — Runtime Coordinator

Entry point for callers. Holds the capability registry, the workflow
state store and two thread pools:

    workflow pool  one thread per running workflow; the single writer
                   of that workflow's state
    round pool     executes the tasks of every round, for all workflows

Operations:
    register_provider(provider)
    execute_task(task) → Result
    start_workflow(workflow) → workflow_id     (fire-and-forget)
    get_workflow_status(workflow_id) → WorkflowResult | None
    wait(workflow_id, timeout) → WorkflowResult
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from appraisal_coordinator.definitions import check_workflow
from appraisal_coordinator.dispatcher import Dispatcher
from appraisal_coordinator.errors import CoordinatorError, WorkflowNotFoundError
from appraisal_coordinator.finalizer import Finalizer, WorkflowListener
from appraisal_coordinator.providers import Provider
from appraisal_coordinator.registry import CapabilityRegistry
from appraisal_coordinator.scheduler import WorkflowScheduler
from appraisal_coordinator.settings import CoordinatorSettings
from appraisal_coordinator.store import WorkflowStateStore
from appraisal_coordinator.types import (
    Result,
    Task,
    Workflow,
    WorkflowResult,
    WorkflowState,
)
from appraisal_engine.config import load_config

logger = logging.getLogger("appraisal_ai.coordinator")


class Coordinator:
    """
    Dispatches tasks to registered providers and runs workflow graphs.

    Usage:
        coord = Coordinator()
        coord.register_provider(ValuationAgent())
        wid = coord.start_workflow(workflow)
        result = coord.wait(wid)
    """

    # Finished waiters kept for wait() callers that arrive late.
    FINISHED_WAITER_LIMIT = 100

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: dict[str, Any] | None = None,
        settings: CoordinatorSettings | None = None,
        registry: CapabilityRegistry | None = None,
        store: WorkflowStateStore | None = None,
    ):
        if settings is None:
            if config is None and config_path is not None:
                config = load_config(base_path=str(config_path))
            settings = CoordinatorSettings.from_config(config)
        self.settings = settings

        self.registry = registry or CapabilityRegistry()
        self.store = store or WorkflowStateStore(history_limit=settings.history_limit)
        self.dispatcher = Dispatcher(self.registry)
        self.finalizer = Finalizer(self.store)

        self._round_pool = ThreadPoolExecutor(
            max_workers=settings.max_workers,
            thread_name_prefix="ac_round",
        )
        self._workflow_pool = ThreadPoolExecutor(
            max_workers=settings.max_concurrent_workflows,
            thread_name_prefix="ac_workflow",
        )
        self.scheduler = WorkflowScheduler(
            self.dispatcher, self.finalizer, self._round_pool, settings,
        )

        self._waiters: dict[str, Future] = {}
        self._finished: OrderedDict[str, Future] = OrderedDict()
        self._lock = threading.Lock()
        # Resolve waiters before any user listener runs.
        self.finalizer.add_listener(self._resolve_waiter)

        logger.info(
            "Coordinator started: max_workers=%d, max_concurrent_workflows=%d",
            settings.max_workers, settings.max_concurrent_workflows,
        )

    # ─── Providers ───────────────────────────────────────────────────

    def register_provider(self, provider: Provider) -> None:
        self.registry.register(provider)

    def find_capable_providers(self, task_type: str) -> list[Provider]:
        return self.registry.find(task_type)

    # ─── Single tasks ────────────────────────────────────────────────

    def execute_task(self, task: Task) -> Result:
        """Run one task outside any workflow. Never raises for task failure."""
        logger.info("Executing task %s (%s)", task.task_id, task.task_type)
        return self.dispatcher.execute(task)

    # ─── Workflows ───────────────────────────────────────────────────

    def start_workflow(self, workflow: Workflow) -> str:
        """
        Submit a workflow and return its id immediately.

        Raises WorkflowValidationError for malformed definitions and
        DuplicateWorkflowError if the id is already running. Task
        failures are reported only through the WorkflowResult.
        """
        check_workflow(workflow)
        state = WorkflowState.create(workflow)
        self.store.add(state)

        waiter: Future = Future()
        with self._lock:
            self._finished.pop(workflow.workflow_id, None)
            self._waiters[workflow.workflow_id] = waiter

        logger.info(
            "Starting workflow %s (%s): %d tasks, %d ready",
            workflow.name, workflow.workflow_id, len(workflow.tasks), len(state.ready),
        )
        try:
            self._workflow_pool.submit(self._drive, state)
        except RuntimeError as e:
            self.store.discard(workflow.workflow_id)
            with self._lock:
                self._waiters.pop(workflow.workflow_id, None)
            raise CoordinatorError(
                f"Cannot start workflow {workflow.workflow_id}: coordinator is shut down"
            ) from e
        return workflow.workflow_id

    def _drive(self, state: WorkflowState) -> None:
        """Runs on the workflow pool."""
        try:
            self.scheduler.run(state)
        except Exception as e:
            logger.exception("Workflow %s crashed", state.workflow_id)
            # The in-flight batch was already taken off `ready`.
            with state.lock:
                state.failed.update(
                    tid for tid in state.index
                    if tid not in state.completed
                )
                state.pending.clear()
                state.ready.clear()
            self.finalizer.finalize(state, {"error": str(e)})

    def get_workflow_status(self, workflow_id: str) -> WorkflowResult | None:
        """
        Non-blocking status.

        Active workflows report PARTIAL with the results so far; finished
        ones report their final result while it is kept in history.
        """
        snapshot = self.store.snapshot(workflow_id)
        if snapshot is not None:
            return snapshot
        result = self.store.get_result(workflow_id)
        if result is None:
            logger.warning("Workflow %s not found", workflow_id)
        return result

    def wait(self, workflow_id: str, timeout: float | None = None) -> WorkflowResult:
        """
        Block until the workflow is finalized.

        Raises concurrent.futures.TimeoutError if it does not finish in
        time (a stuck workflow held active never finishes).
        """
        with self._lock:
            waiter = self._waiters.get(workflow_id) or self._finished.get(workflow_id)
        if waiter is None:
            result = self.store.get_result(workflow_id)
            if result is None:
                raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
            return result
        return waiter.result(timeout=timeout)

    def _resolve_waiter(self, result: WorkflowResult) -> None:
        with self._lock:
            waiter = self._waiters.pop(result.workflow_id, None)
            if waiter is None:
                return
            self._finished[result.workflow_id] = waiter
            self._finished.move_to_end(result.workflow_id)
            while len(self._finished) > self.FINISHED_WAITER_LIMIT:
                self._finished.popitem(last=False)
        if not waiter.done():
            waiter.set_result(result)

    def add_listener(self, listener: WorkflowListener) -> None:
        """Call `listener(result)` once for every finalized workflow."""
        self.finalizer.add_listener(listener)

    def list_active_workflows(self) -> list[str]:
        return self.store.active_ids()

    def get_workflow_history(self, limit: int | None = None) -> list[WorkflowResult]:
        return self.store.history(limit)

    # ─── Lifecycle ───────────────────────────────────────────────────

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down coordinator...")
        self._workflow_pool.shutdown(wait=wait, cancel_futures=not wait)
        self._round_pool.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False
