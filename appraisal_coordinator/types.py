"""
Appraisal Coordinator — Type Definitions

Tasks, results, workflow definitions, per-workflow scheduling state
and the terminal workflow result.
"""

from __future__ import annotations

import enum
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

COORDINATOR_ID = "coordinator"
WORKFLOW_REQUESTER = "workflow-coordinator"


# ─── Task Types ──────────────────────────────────────────────────────

class TaskTypes:
    """Well-known task types handled by the appraisal agents."""
    # Data extraction
    EXTRACT_DOCUMENT_DATA = "extract_document_data"
    EXTRACT_EMAIL_ORDER = "extract_email_order"

    # Valuation
    ESTIMATE_PROPERTY_VALUE = "estimate_property_value"
    ANALYZE_COMPARABLES = "analyze_comparables"
    RECOMMEND_ADJUSTMENTS = "recommend_adjustments"

    # Market analysis
    GENERATE_MARKET_ANALYSIS = "generate_market_analysis"

    # Narrative
    GENERATE_NARRATIVE = "generate_narrative"
    GENERATE_PROPERTY_DESCRIPTION = "generate_property_description"

    # Compliance
    CHECK_USPAP_COMPLIANCE = "check_uspap_compliance"
    CHECK_UAD_COMPLIANCE = "check_uad_compliance"
    VALIDATE_REPORT = "validate_report"


# ─── Status Enums ────────────────────────────────────────────────────

class ResultStatus(str, enum.Enum):
    """Outcome of a single task execution."""
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class WorkflowStatus(str, enum.Enum):
    """Terminal (or in-progress) status of a workflow."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class FallbackStrategy(str, enum.Enum):
    """What to do when a required task does not complete."""
    SKIP = "skip"
    RETRY = "retry"
    SUBSTITUTE = "substitute"


# ─── Tasks & Results ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Task:
    """One unit of requested work, addressed to providers by task_type."""
    task_id: str
    task_type: str
    priority: int = 1
    payload: Any = None
    requester: str = ""
    deadline: float | None = None   # advisory only, never enforced
    context_id: str | None = None
    parent_task_id: str | None = None
    metadata: dict[str, Any] | None = None

    @staticmethod
    def create(
        task_type: str,
        payload: Any = None,
        requester: str = "system",
        priority: int = 1,
        deadline: float | None = None,
        context_id: str | None = None,
        parent_task_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        return Task(
            task_id=f"task_{uuid.uuid4().hex[:12]}",
            task_type=task_type,
            priority=priority,
            payload=payload,
            requester=requester,
            deadline=deadline,
            context_id=context_id,
            parent_task_id=parent_task_id,
            metadata=metadata,
        )


@dataclass(frozen=True)
class Result:
    """Outcome of one Task, as reported by the responding provider."""
    task_id: str
    provider_id: str
    status: ResultStatus
    payload: Any = None
    error: str | None = None
    confidence: float = 0.0
    elapsed: float = 0.0            # seconds
    metadata: dict[str, Any] | None = None

    def __post_init__(self):
        # Accept plain strings from providers; unknown values raise ValueError.
        object.__setattr__(self, "status", ResultStatus(self.status))

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.COMPLETED

    @staticmethod
    def failure(
        task_id: str,
        provider_id: str,
        error: str,
        elapsed: float = 0.0,
    ) -> Result:
        return Result(
            task_id=task_id,
            provider_id=provider_id,
            status=ResultStatus.FAILED,
            error=error,
            confidence=0.0,
            elapsed=elapsed,
        )


# ─── Workflow Definitions ────────────────────────────────────────────

@dataclass
class TaskTemplate:
    """The parts of a Task that a workflow definition fixes up front."""
    task_type: str
    priority: int = 1
    payload: Any = None
    deadline: float | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class WorkflowTask:
    """
    A task template placed in a workflow graph.

    `dependencies` are indices into the owning workflow's task list.
    """
    task: TaskTemplate
    dependencies: list[int] = field(default_factory=list)
    optional: bool = False
    fallback: FallbackStrategy | None = None
    fallback_task: TaskTemplate | None = None


@dataclass
class Workflow:
    """A named DAG of task templates, executed as a whole."""
    workflow_id: str
    name: str
    tasks: list[WorkflowTask]
    description: str = ""
    context_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def create(
        name: str,
        tasks: list[WorkflowTask],
        description: str = "",
        context_id: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Workflow:
        wid = f"wf_{uuid.uuid4().hex[:12]}"
        return Workflow(
            workflow_id=wid,
            name=name,
            tasks=tasks,
            description=description,
            context_id=context_id or wid,
            metadata=metadata or {},
        )


def derive_task_id(workflow_id: str, index: int) -> str:
    """Stable id of the task at `index` within a workflow."""
    return f"{workflow_id}-task-{index}"


def fallback_task_id(task_id: str) -> str:
    return f"{task_id}-fallback"


# ─── Scheduling State ────────────────────────────────────────────────

@dataclass
class WorkflowState:
    """
    Mutable scheduling state for one running workflow.

    Owned by the thread driving the workflow's rounds. Every derived
    task id sits in exactly one of pending/ready/completed/failed
    between rounds.
    """
    workflow: Workflow
    results: dict[str, Result] = field(default_factory=dict)
    pending: set[str] = field(default_factory=set)
    ready: set[str] = field(default_factory=set)
    completed: set[str] = field(default_factory=set)
    failed: set[str] = field(default_factory=set)
    attempts: dict[str, int] = field(default_factory=dict)
    rounds: int = 0
    started_at: float = field(default_factory=time.monotonic)

    # derived id → index into workflow.tasks
    index: dict[str, int] = field(default_factory=dict)

    # Held by the driving thread while it mutates, and by readers taking
    # snapshots.
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @staticmethod
    def create(workflow: Workflow) -> WorkflowState:
        state = WorkflowState(workflow=workflow)
        for i, wt in enumerate(workflow.tasks):
            tid = derive_task_id(workflow.workflow_id, i)
            state.index[tid] = i
            if wt.dependencies:
                state.pending.add(tid)
            else:
                state.ready.add(tid)
        return state

    @property
    def workflow_id(self) -> str:
        return self.workflow.workflow_id

    def definition(self, task_id: str) -> WorkflowTask:
        return self.workflow.tasks[self.index[task_id]]

    def dependency_ids(self, task_id: str) -> list[str]:
        return [
            derive_task_id(self.workflow_id, i)
            for i in self.definition(task_id).dependencies
        ]

    @property
    def drained(self) -> bool:
        return not self.pending and not self.ready

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


@dataclass(frozen=True)
class WorkflowResult:
    """Snapshot of a workflow's outcome."""
    workflow_id: str
    status: WorkflowStatus
    results: dict[str, Result]
    elapsed: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def failed_tasks(self) -> dict[str, Result]:
        return {tid: r for tid, r in self.results.items() if not r.ok}
