"""
Appraisal Coordinator — Dispatcher

Executes one task on the first capable provider. This is the only
place provider exceptions are turned into data: callers always get a
Result back.
"""

from __future__ import annotations

import dataclasses
import logging
import time

from appraisal_coordinator.registry import CapabilityRegistry
from appraisal_coordinator.types import COORDINATOR_ID, Result, Task

logger = logging.getLogger("appraisal_ai.dispatcher")


class Dispatcher:

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    def execute(self, task: Task) -> Result:
        """
        Run `task` on the first registered provider for its type.

        The returned Result's elapsed time is always the dispatcher's
        own wall-clock measurement.
        """
        logger.debug("Executing task %s (%s)", task.task_id, task.task_type)

        capable = self.registry.find(task.task_type)
        if not capable:
            logger.warning("No capable provider for task type %r", task.task_type)
            return Result.failure(
                task.task_id, COORDINATOR_ID,
                f'No capable provider for task type "{task.task_type}"',
            )

        # No load balancing or performance ranking: first registered wins.
        provider = capable[0]

        start = time.monotonic()
        try:
            logger.debug("Delegating task %s to %s", task.task_id, provider.provider_id)
            result = provider.process(task)
        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "Provider %s raised on task %s: %s",
                provider.provider_id, task.task_id, e, exc_info=True,
            )
            return Result.failure(task.task_id, provider.provider_id, str(e), elapsed)

        if not isinstance(result, Result):
            return Result.failure(
                task.task_id, provider.provider_id,
                f"Provider returned {type(result).__name__}, expected Result",
                time.monotonic() - start,
            )

        return dataclasses.replace(result, elapsed=time.monotonic() - start)
