"""
Appraisal Coordinator — Structured Logging with Trace IDs

Emits JSON log lines for every coordinator event. Field names follow
OpenTelemetry semantic conventions (trace_id, span_id, service.name)
so the output can be shipped to an OTel collector unchanged.

Usage:
    from appraisal_engine.logging import configure_logging, WorkflowTrace

    configure_logging(level="INFO")
    trace = WorkflowTrace(workflow_id="wf_1a2b", workflow_name="appraisal")
    trace.on_workflow_start(task_count=4, ready=2)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "appraisal_ai"


# ═══════════════════════════════════════════════════════════════════
# JSON Formatter
# ═══════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON lines.

    Structured fields attached via `extra={"structured": {...}}` are
    merged into the top-level entry.
    """

    def __init__(self, service_name: str = ROOT_LOGGER):
        super().__init__()
        self.service_name = service_name
        self.service_version = os.environ.get("AC_VERSION", "0.1.0")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service.name": self.service_name,
            "service.version": self.service_version,
        }

        if hasattr(record, "structured"):
            entry.update(record.structured)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception.type"] = record.exc_info[0].__name__
            entry["exception.message"] = str(record.exc_info[1])

        return json.dumps(entry, default=str)


# ═══════════════════════════════════════════════════════════════════
# Log Configuration
# ═══════════════════════════════════════════════════════════════════

def configure_logging(
    level: str = "INFO",
    stream: Any = None,
    service_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """
    Configure the appraisal_ai logger with JSON output.

    Args:
        level: DEBUG, INFO, WARNING, ERROR
        stream: Output stream (default: sys.stderr)
        service_name: Service name in log entries

    Returns:
        The configured appraisal_ai logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers on reconfigure
    logger.handlers.clear()

    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith(ROOT_LOGGER + "."):
            child = logging.getLogger(name)
            child.handlers.clear()
            child.setLevel(logging.NOTSET)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "") -> logging.Logger:
    """Get a child logger under the appraisal_ai namespace."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


def generate_trace_id() -> str:
    """Generate an OTel-compatible trace ID (32 hex chars)."""
    return uuid.uuid4().hex


def generate_span_id() -> str:
    """Generate an OTel-compatible span ID (16 hex chars)."""
    return uuid.uuid4().hex[:16]


# ═══════════════════════════════════════════════════════════════════
# Workflow Trace
# ═══════════════════════════════════════════════════════════════════

class WorkflowTrace:
    """
    Structured event emitter for one workflow run.

    Every entry carries the workflow's trace_id; each dispatched task
    gets its own span_id so task_dispatch and task_result pair up.
    """

    def __init__(
        self,
        workflow_id: str = "",
        workflow_name: str = "",
        trace_id: str | None = None,
    ):
        self.workflow_id = workflow_id
        self.workflow_name = workflow_name
        self.trace_id = trace_id or generate_trace_id()
        self._logger = get_logger("trace")
        self._task_spans: dict[str, str] = {}

    def _base_fields(self) -> dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "workflow_id": self.workflow_id,
            "workflow": self.workflow_name,
        }

    def _emit(self, level: int, action: str, **fields):
        if not self._logger.isEnabledFor(level):
            return
        structured = {**self._base_fields(), "action": action, **fields}
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="", lno=0, msg=action,
            args=(), exc_info=None,
        )
        record.structured = structured
        self._logger.handle(record)

    def _span(self, task_id: str) -> str:
        span_id = self._task_spans.get(task_id)
        if span_id is None:
            span_id = generate_span_id()
            self._task_spans[task_id] = span_id
        return span_id

    # ── Workflow lifecycle ──────────────────────────────────────

    def on_workflow_start(self, task_count: int, ready: int) -> None:
        self._emit(
            logging.INFO, "workflow_start",
            task_count=task_count,
            ready=ready,
        )

    def on_round_start(self, round_number: int, ready: int, pending: int) -> None:
        self._emit(
            logging.INFO, "round_start",
            round=round_number,
            ready=ready,
            pending=pending,
        )

    def on_task_dispatch(self, task_id: str, task_type: str) -> None:
        self._emit(
            logging.DEBUG, "task_dispatch",
            task_id=task_id,
            task_type=task_type,
            span_id=self._span(task_id),
        )

    def on_task_result(
        self,
        task_id: str,
        provider_id: str,
        status: str,
        elapsed: float,
        error: str | None = None,
    ) -> None:
        fields: dict[str, Any] = {
            "task_id": task_id,
            "provider_id": provider_id,
            "status": status,
            "latency_ms": round(elapsed * 1000, 1),
            "span_id": self._span(task_id),
        }
        if error:
            fields["error"] = error[:500]
        level = logging.INFO if status == "completed" else logging.WARNING
        self._emit(level, "task_result", **fields)

    def on_fallback_applied(self, task_id: str, strategy: str, outcome: str) -> None:
        self._emit(
            logging.INFO, "fallback_applied",
            task_id=task_id,
            strategy=strategy,
            outcome=outcome,
        )

    def on_workflow_stuck(self, stuck_tasks: list[str], policy: str) -> None:
        self._emit(
            logging.WARNING, "workflow_stuck",
            stuck_tasks=stuck_tasks,
            policy=policy,
        )

    def on_workflow_end(
        self,
        status: str,
        elapsed_s: float,
        completed: int = 0,
        failed: int = 0,
        rounds: int = 0,
    ) -> None:
        self._emit(
            logging.INFO, "workflow_end",
            status=status,
            elapsed_s=round(elapsed_s, 3),
            completed=completed,
            failed=failed,
            rounds=rounds,
        )
