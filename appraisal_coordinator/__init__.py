"""
Appraisal Coordinator

Dispatches typed tasks to capability-providing agents and runs
workflows of dependent tasks in concurrent rounds, applying per-task
fallback policies.

Usage:
    from appraisal_coordinator import Coordinator, Workflow, WorkflowTask, TaskTemplate

    coord = Coordinator("coordinator.yaml")
    coord.register_provider(extraction_agent)
    wid = coord.start_workflow(workflow)
    result = coord.wait(wid)
"""

from appraisal_coordinator.types import (
    COORDINATOR_ID,
    WORKFLOW_REQUESTER,
    FallbackStrategy,
    Result,
    ResultStatus,
    Task,
    TaskTemplate,
    TaskTypes,
    Workflow,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
    WorkflowTask,
)
from appraisal_coordinator.errors import (
    CoordinatorError,
    DuplicateWorkflowError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from appraisal_coordinator.providers import BaseProvider, FunctionProvider, Provider
from appraisal_coordinator.registry import CapabilityRegistry
from appraisal_coordinator.dispatcher import Dispatcher
from appraisal_coordinator.settings import CoordinatorSettings
from appraisal_coordinator.store import WorkflowStateStore
from appraisal_coordinator.finalizer import Finalizer, compute_workflow_status
from appraisal_coordinator.scheduler import WorkflowScheduler
from appraisal_coordinator.definitions import (
    load_workflow,
    plan_rounds,
    validate_workflow,
    workflow_from_dict,
)
from appraisal_coordinator.runtime import Coordinator

__all__ = [
    "COORDINATOR_ID",
    "WORKFLOW_REQUESTER",
    "FallbackStrategy",
    "Result",
    "ResultStatus",
    "Task",
    "TaskTemplate",
    "TaskTypes",
    "Workflow",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowTask",
    "CoordinatorError",
    "DuplicateWorkflowError",
    "WorkflowNotFoundError",
    "WorkflowValidationError",
    "BaseProvider",
    "FunctionProvider",
    "Provider",
    "CapabilityRegistry",
    "Dispatcher",
    "CoordinatorSettings",
    "WorkflowStateStore",
    "Finalizer",
    "compute_workflow_status",
    "WorkflowScheduler",
    "load_workflow",
    "plan_rounds",
    "validate_workflow",
    "workflow_from_dict",
    "Coordinator",
]
