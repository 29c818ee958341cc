"""
Appraisal Coordinator — Runtime Settings

Read from the `coordinator:` section of the merged YAML config:

    coordinator:
      max_workers: 8              # concurrent task executions (all rounds)
      max_concurrent_workflows: 4 # workflows driven at the same time
      max_retries: null           # null = retry fallback never gives up
      stuck_policy: hold          # hold | fail
      history_limit: 100          # finished results kept for status queries
      log_level: INFO
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

STUCK_HOLD = "hold"
STUCK_FAIL = "fail"


@dataclass
class CoordinatorSettings:
    max_workers: int = 8
    max_concurrent_workflows: int = 4
    max_retries: int | None = None
    stuck_policy: str = STUCK_HOLD
    history_limit: int = 100
    log_level: str = "INFO"

    def __post_init__(self):
        if self.stuck_policy not in (STUCK_HOLD, STUCK_FAIL):
            raise ValueError(
                f"stuck_policy must be '{STUCK_HOLD}' or '{STUCK_FAIL}', "
                f"got {self.stuck_policy!r}"
            )
        if self.max_workers < 1 or self.max_concurrent_workflows < 1:
            raise ValueError("max_workers and max_concurrent_workflows must be >= 1")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries must be >= 0 or null")

    @staticmethod
    def from_config(config: dict[str, Any] | None) -> CoordinatorSettings:
        section = (config or {}).get("coordinator") or {}
        defaults = CoordinatorSettings()
        max_retries = section.get("max_retries", defaults.max_retries)
        return CoordinatorSettings(
            max_workers=int(section.get("max_workers", defaults.max_workers)),
            max_concurrent_workflows=int(section.get(
                "max_concurrent_workflows", defaults.max_concurrent_workflows)),
            max_retries=None if max_retries is None else int(max_retries),
            stuck_policy=str(section.get("stuck_policy", defaults.stuck_policy)),
            history_limit=int(section.get("history_limit", defaults.history_limit)),
            log_level=str(section.get("log_level", defaults.log_level)),
        )
