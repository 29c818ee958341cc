"""
Appraisal Coordinator — Workflow Scheduler

Advances a workflow's dependency graph in rounds:

    1. take every ready task as one batch
    2. dispatch the batch concurrently on the round pool
    3. wait for the whole batch (barrier)
    4. apply each task's outcome policy
    5. promote pending tasks whose dependencies all completed
    6. repeat while anything is ready

A drained graph is handed to the Finalizer. A graph that still has
pending tasks but nothing ready is stuck; what happens then depends on
the configured stuck policy.

Outcome policy for a task that did not complete:
    optional            → counted as completed
    fallback=skip       → counted as completed
    fallback=retry      → back to ready for the next round
    fallback=substitute → fallback task runs in its place; its result
                          is recorded under the original task id
    otherwise           → failed
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass

from appraisal_coordinator.dispatcher import Dispatcher
from appraisal_coordinator.finalizer import Finalizer
from appraisal_coordinator.settings import STUCK_FAIL, CoordinatorSettings
from appraisal_coordinator.types import (
    COORDINATOR_ID,
    WORKFLOW_REQUESTER,
    FallbackStrategy,
    Result,
    Task,
    TaskTemplate,
    WorkflowResult,
    WorkflowState,
    fallback_task_id,
)
from appraisal_engine.logging import WorkflowTrace

logger = logging.getLogger("appraisal_ai.scheduler")


@dataclass
class TaskOutcome:
    """What one task produced during a round."""
    task_id: str
    result: Result
    substitute: Result | None = None


class WorkflowScheduler:

    def __init__(
        self,
        dispatcher: Dispatcher,
        finalizer: Finalizer,
        executor: Executor,
        settings: CoordinatorSettings | None = None,
    ):
        self.dispatcher = dispatcher
        self.finalizer = finalizer
        self.executor = executor
        self.settings = settings or CoordinatorSettings()

    # ─── Driver ──────────────────────────────────────────────────────

    def run(self, state: WorkflowState) -> WorkflowResult | None:
        """
        Drive `state` until it drains or gets stuck.

        Returns the published WorkflowResult, or None if the workflow is
        stuck and held active.
        """
        wf = state.workflow
        trace = WorkflowTrace(workflow_id=wf.workflow_id, workflow_name=wf.name)
        trace.on_workflow_start(task_count=len(wf.tasks), ready=len(state.ready))
        logger.info("Processing workflow %s (%s)", wf.name, wf.workflow_id)

        while state.ready:
            self.run_round(state, trace)
            self.promote(state)

        if state.drained:
            result = self.finalizer.finalize(state)
            if result is not None:
                trace.on_workflow_end(
                    status=result.status.value,
                    elapsed_s=result.elapsed,
                    completed=len(state.completed),
                    failed=len(state.failed),
                    rounds=state.rounds,
                )
            return result

        return self._handle_stuck(state, trace)

    def run_round(self, state: WorkflowState, trace: WorkflowTrace | None = None) -> list[TaskOutcome]:
        """Execute every ready task concurrently and apply their outcomes."""
        with state.lock:
            batch = sorted(state.ready, key=state.index.get)
            state.ready.clear()
            state.rounds += 1
            pending = len(state.pending)

        if trace:
            trace.on_round_start(state.rounds, ready=len(batch), pending=pending)
        logger.debug("Workflow %s round %d: %s", state.workflow_id, state.rounds, batch)

        futures = [
            self.executor.submit(self._execute_task, state, task_id, trace)
            for task_id in batch
        ]
        # Barrier: the round's outcomes are applied only once all are in.
        outcomes = [f.result() for f in futures]

        for outcome in outcomes:
            self.apply_outcome(state, outcome, trace)
        return outcomes

    def promote(self, state: WorkflowState) -> list[str]:
        """Move pending tasks whose dependencies all completed to ready."""
        promoted = []
        with state.lock:
            for task_id in sorted(state.pending, key=state.index.get):
                if all(dep in state.completed for dep in state.dependency_ids(task_id)):
                    promoted.append(task_id)
            for task_id in promoted:
                state.pending.discard(task_id)
                state.ready.add(task_id)
        return promoted

    # ─── Task execution ──────────────────────────────────────────────

    def _build_task(self, state: WorkflowState, task_id: str, template: TaskTemplate,
                    parent_task_id: str | None = None) -> Task:
        return Task(
            task_id=task_id,
            task_type=template.task_type,
            priority=template.priority,
            payload=template.payload,
            requester=WORKFLOW_REQUESTER,
            deadline=template.deadline,
            context_id=state.workflow.context_id,
            parent_task_id=parent_task_id,
            metadata=template.metadata,
        )

    def _execute_task(self, state: WorkflowState, task_id: str,
                      trace: WorkflowTrace | None) -> TaskOutcome:
        """
        Runs on the round pool. Reads the definition, never mutates state.

        An unexpected error fails this task only; the rest of the batch
        keeps its outcomes.
        """
        try:
            return self._dispatch_with_fallback(state, task_id, trace)
        except Exception as e:
            logger.error("Task %s raised outside the dispatcher: %s", task_id, e, exc_info=True)
            return TaskOutcome(task_id=task_id, result=Result.failure(task_id, COORDINATOR_ID, str(e)))

    def _dispatch_with_fallback(self, state: WorkflowState, task_id: str,
                                trace: WorkflowTrace | None) -> TaskOutcome:
        definition = state.definition(task_id)
        task = self._build_task(state, task_id, definition.task)

        if trace:
            trace.on_task_dispatch(task_id, task.task_type)
        result = self.dispatcher.execute(task)
        if trace:
            trace.on_task_result(task_id, result.provider_id, result.status.value,
                                 result.elapsed, result.error)

        outcome = TaskOutcome(task_id=task_id, result=result)
        if (not result.ok
                and not definition.optional
                and definition.fallback == FallbackStrategy.SUBSTITUTE
                and definition.fallback_task is not None):
            logger.info("Task %s failed, substituting fallback task", task_id)
            substitute = self._build_task(
                state, fallback_task_id(task_id), definition.fallback_task,
                parent_task_id=task_id,
            )
            outcome.substitute = self.dispatcher.execute(substitute)
            if trace:
                trace.on_task_result(substitute.task_id, outcome.substitute.provider_id,
                                     outcome.substitute.status.value,
                                     outcome.substitute.elapsed, outcome.substitute.error)
        return outcome

    # ─── Outcome policy ──────────────────────────────────────────────

    def apply_outcome(self, state: WorkflowState, outcome: TaskOutcome,
                      trace: WorkflowTrace | None = None) -> None:
        task_id = outcome.task_id
        definition = state.definition(task_id)
        strategy = None

        with state.lock:
            attempts = state.attempts.get(task_id, 0) + 1
            state.attempts[task_id] = attempts
            state.results[task_id] = outcome.substitute or outcome.result

            if outcome.result.ok:
                target = state.completed
            elif definition.optional:
                logger.info("Optional task %s failed, continuing workflow", task_id)
                target = state.completed
            elif definition.fallback == FallbackStrategy.SKIP:
                strategy = "skip"
                target = state.completed
            elif definition.fallback == FallbackStrategy.RETRY:
                strategy = "retry"
                limit = self.settings.max_retries
                if limit is not None and attempts > limit:
                    logger.warning("Task %s failed after %d attempts, retry budget exhausted",
                                   task_id, attempts)
                    target = state.failed
                else:
                    target = state.ready
            elif (definition.fallback == FallbackStrategy.SUBSTITUTE
                    and outcome.substitute is not None):
                strategy = "substitute"
                target = state.completed if outcome.substitute.ok else state.failed
            else:
                target = state.failed

            target.add(task_id)
            outcome_name = (
                "completed" if target is state.completed
                else "ready" if target is state.ready
                else "failed"
            )

        if strategy and trace:
            trace.on_fallback_applied(task_id, strategy, outcome_name)

    # ─── Stuck graphs ────────────────────────────────────────────────

    def _handle_stuck(self, state: WorkflowState, trace: WorkflowTrace) -> WorkflowResult | None:
        with state.lock:
            stuck = sorted(state.pending, key=state.index.get)
        policy = self.settings.stuck_policy
        trace.on_workflow_stuck(stuck, policy)
        logger.warning(
            "Workflow %s stuck: %d pending tasks can never run (%s)",
            state.workflow_id, len(stuck), ", ".join(stuck),
        )

        if policy != STUCK_FAIL:
            return None

        with state.lock:
            state.failed.update(state.pending)
            state.pending.clear()
        result = self.finalizer.finalize(state, {"stuck_tasks": stuck})
        if result is not None:
            trace.on_workflow_end(
                status=result.status.value,
                elapsed_s=result.elapsed,
                completed=len(state.completed),
                failed=len(state.failed),
                rounds=state.rounds,
            )
        return result
