"""
Appraisal Coordinator — Exceptions

Raised only for caller mistakes. Task and provider failures never
surface as exceptions; they are carried in Result / WorkflowResult.
"""


class CoordinatorError(Exception):
    """Base class for coordinator errors."""
    pass


class WorkflowValidationError(CoordinatorError, ValueError):
    """Raised when a workflow definition is malformed."""

    def __init__(self, workflow_id: str, problems: list[str]):
        self.workflow_id = workflow_id
        self.problems = problems
        super().__init__(
            f"Invalid workflow {workflow_id}: " + "; ".join(problems)
        )


class DuplicateWorkflowError(CoordinatorError):
    """Raised when a workflow id is submitted while already active."""
    pass


class WorkflowNotFoundError(CoordinatorError, KeyError):
    """Raised when waiting on a workflow id the coordinator never saw."""

    def __str__(self):
        return Exception.__str__(self)
