"""
Appraisal Coordinator — Workflow Definitions

Builds Workflow objects from plain dicts or YAML files, checks them for
structural problems, and computes the round plan a graph will follow
when every task completes.

YAML format:

    name: full_appraisal
    description: Extract, value and narrate a subject property
    metadata: {order_id: A-1042}
    tasks:
      - id: extract                    # optional label for depends_on
        type: extract_document_data
        payload: {document_type: purchase_contract}
      - id: value
        type: estimate_property_value
        depends_on: [extract]          # labels or indices
        fallback: substitute
        fallback_task:
          type: analyze_comparables
      - type: generate_narrative
        depends_on: [1]
        optional: true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from appraisal_coordinator.errors import WorkflowValidationError
from appraisal_coordinator.types import (
    FallbackStrategy,
    TaskTemplate,
    Workflow,
    WorkflowTask,
)


# ─── Building ────────────────────────────────────────────────────────

def _template_from_dict(data: dict[str, Any], where: str) -> TaskTemplate:
    task_type = data.get("type") or data.get("task_type")
    if not task_type:
        raise ValueError(f"{where}: missing task type")
    return TaskTemplate(
        task_type=str(task_type),
        priority=int(data.get("priority", 1)),
        payload=data.get("payload"),
        deadline=data.get("deadline"),
        metadata=data.get("metadata"),
    )


def _parse_fallback(value: Any, where: str) -> FallbackStrategy | None:
    if value is None:
        return None
    try:
        return FallbackStrategy(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in FallbackStrategy)
        raise ValueError(f"{where}: unknown fallback {value!r} (expected {allowed})")


def workflow_from_dict(data: dict[str, Any], workflow_id: str = "") -> Workflow:
    """
    Build a Workflow from its dict form.

    Raises WorkflowValidationError if the dict cannot be turned into a
    workflow (missing types, unknown labels or fallback names).
    """
    name = str(data.get("name") or "workflow")
    raw_tasks = data.get("tasks") or []
    problems: list[str] = []
    if not isinstance(raw_tasks, list):
        raise WorkflowValidationError(workflow_id or name, ["tasks: expected a list"])

    labels: dict[str, int] = {}
    for i, raw in enumerate(raw_tasks):
        label = raw.get("id") if isinstance(raw, dict) else None
        if label is None:
            continue
        if str(label) in labels:
            problems.append(f"task {i}: duplicate id {label!r}")
        labels[str(label)] = i

    tasks: list[WorkflowTask] = []
    for i, raw in enumerate(raw_tasks):
        where = f"task {i}"
        if not isinstance(raw, dict):
            problems.append(f"{where}: expected a mapping")
            continue
        try:
            template = _template_from_dict(raw, where)
            fallback = _parse_fallback(raw.get("fallback"), where)
            fallback_raw = raw.get("fallback_task")
            if fallback_raw is not None and not isinstance(fallback_raw, dict):
                raise ValueError(f"{where}: fallback_task must be a mapping with a type")
            fallback_task = (
                _template_from_dict(fallback_raw, f"{where} fallback_task")
                if fallback_raw else None
            )
        except (ValueError, TypeError) as e:
            problems.append(str(e))
            continue

        dependencies = []
        raw_deps = raw.get("depends_on") or []
        if not isinstance(raw_deps, list):
            raw_deps = [raw_deps]
        for dep in raw_deps:
            if isinstance(dep, int):
                dependencies.append(dep)
            elif str(dep) in labels:
                dependencies.append(labels[str(dep)])
            else:
                problems.append(f"{where}: unknown dependency {dep!r}")

        tasks.append(WorkflowTask(
            task=template,
            dependencies=dependencies,
            optional=bool(raw.get("optional", False)),
            fallback=fallback,
            fallback_task=fallback_task,
        ))

    wid = workflow_id or str(data.get("workflow_id") or "")
    if problems:
        raise WorkflowValidationError(wid or name, problems)

    workflow = Workflow.create(
        name=name,
        tasks=tasks,
        description=str(data.get("description") or ""),
        context_id=str(data.get("context_id") or ""),
        metadata=dict(data.get("metadata") or {}),
    )
    if wid:
        workflow.workflow_id = wid
        if not data.get("context_id"):
            workflow.context_id = wid
    return workflow


def load_workflow(path: str | Path, workflow_id: str = "") -> Workflow:
    """Load a workflow definition from a YAML file."""
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise WorkflowValidationError(str(path), [f"invalid YAML: {e}"]) from e
    if not isinstance(data, dict):
        raise WorkflowValidationError(str(path), ["top level must be a mapping"])
    return workflow_from_dict(data, workflow_id=workflow_id)


# ─── Validation ──────────────────────────────────────────────────────

def structural_problems(workflow: Workflow) -> list[str]:
    """Problems that make a workflow impossible to schedule as written."""
    problems = []
    n = len(workflow.tasks)
    for i, wt in enumerate(workflow.tasks):
        for dep in wt.dependencies:
            if not isinstance(dep, int) or dep < 0 or dep >= n:
                problems.append(f"task {i}: dependency {dep!r} out of range")
            elif dep == i:
                problems.append(f"task {i}: depends on itself")
        if wt.fallback == FallbackStrategy.SUBSTITUTE and wt.fallback_task is None:
            problems.append(f"task {i}: substitute fallback without fallback_task")
    return problems


def check_workflow(workflow: Workflow) -> None:
    """Raise WorkflowValidationError on structural problems. Cycles pass."""
    problems = structural_problems(workflow)
    if problems:
        raise WorkflowValidationError(workflow.workflow_id, problems)


def find_cycle(workflow: Workflow) -> list[int] | None:
    """Return one dependency cycle as a list of task indices, or None."""
    n = len(workflow.tasks)
    WHITE, GREY, BLACK = 0, 1, 2
    color = [WHITE] * n
    stack: list[int] = []

    def visit(i: int) -> list[int] | None:
        color[i] = GREY
        stack.append(i)
        for dep in workflow.tasks[i].dependencies:
            if not (0 <= dep < n):
                continue
            if color[dep] == GREY:
                return stack[stack.index(dep):] + [dep]
            if color[dep] == WHITE:
                cycle = visit(dep)
                if cycle:
                    return cycle
        stack.pop()
        color[i] = BLACK
        return None

    for i in range(n):
        if color[i] == WHITE:
            cycle = visit(i)
            if cycle:
                return cycle
    return None


def validate_workflow(workflow: Workflow) -> list[str]:
    """All problems, including dependency cycles."""
    problems = structural_problems(workflow)
    cycle = find_cycle(workflow)
    if cycle:
        problems.append("dependency cycle: " + " -> ".join(str(i) for i in cycle))
    return problems


# ─── Planning ────────────────────────────────────────────────────────

def plan_rounds(workflow: Workflow) -> tuple[list[list[int]], list[int]]:
    """
    Rounds the scheduler runs if every task completes first time.

    Returns (rounds, unreachable) where each round is a list of task
    indices and `unreachable` lists tasks that can never become ready.
    """
    n = len(workflow.tasks)
    done: set[int] = set()
    remaining = set(range(n))
    rounds: list[list[int]] = []

    while remaining:
        layer = sorted(
            i for i in remaining
            if all(dep in done for dep in workflow.tasks[i].dependencies)
        )
        if not layer:
            break
        rounds.append(layer)
        done.update(layer)
        remaining.difference_update(layer)

    return rounds, sorted(remaining)
