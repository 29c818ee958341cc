"""
Appraisal Coordinator — Provider Interface

A provider (agent) declares the task types it can handle and turns a
Task into a Result. Any object with this shape can be registered;
BaseProvider and FunctionProvider are conveniences for the common
cases.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from appraisal_coordinator.types import Result, ResultStatus, Task

logger = logging.getLogger("appraisal_ai.providers")


@runtime_checkable
class Provider(Protocol):
    provider_id: str
    name: str
    description: str
    capabilities: frozenset[str]

    def can_handle(self, task: Task) -> bool: ...

    def process(self, task: Task) -> Result: ...


class BaseProvider:
    """
    Base class for agents.

    Subclasses implement handle_task(), returning the result payload.
    process() wraps the payload into a completed Result, or a failed
    Result if handle_task() raises.
    """

    default_confidence: float = 1.0

    def __init__(
        self,
        provider_id: str,
        name: str,
        description: str = "",
        capabilities: Iterable[str] = (),
    ):
        self.provider_id = provider_id
        self.name = name
        self.description = description
        self.capabilities = frozenset(capabilities)

    def can_handle(self, task: Task) -> bool:
        return task.task_type in self.capabilities

    def handle_task(self, task: Task) -> Any:
        raise NotImplementedError

    def process(self, task: Task) -> Result:
        if not self.can_handle(task):
            return Result.failure(
                task.task_id, self.provider_id,
                f"Unsupported task type: {task.task_type}",
            )

        start = time.monotonic()
        try:
            payload = self.handle_task(task)
        except Exception as e:
            logger.warning("[%s] task %s failed: %s", self.name, task.task_id, e)
            return Result.failure(
                task.task_id, self.provider_id, str(e),
                elapsed=time.monotonic() - start,
            )

        return Result(
            task_id=task.task_id,
            provider_id=self.provider_id,
            status=ResultStatus.COMPLETED,
            payload=payload,
            confidence=self.default_confidence,
            elapsed=time.monotonic() - start,
        )

    def __repr__(self):
        return f"{type(self).__name__}({self.provider_id!r}, capabilities={sorted(self.capabilities)})"


class FunctionProvider(BaseProvider):
    """Adapts a plain callable `fn(task) -> payload` into a provider."""

    def __init__(
        self,
        provider_id: str,
        capabilities: Iterable[str],
        fn: Callable[[Task], Any],
        name: str = "",
        description: str = "",
    ):
        super().__init__(provider_id, name or provider_id, description, capabilities)
        self._fn = fn

    def handle_task(self, task: Task) -> Any:
        return self._fn(task)
