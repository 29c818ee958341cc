"""
Appraisal Coordinator — CLI

Inspect workflow definitions without running any agents.

Usage:
    # Check a workflow file for structural problems and cycles
    python -m appraisal_coordinator.cli validate workflows/full_appraisal.yaml

    # Show the rounds the scheduler will run if every task completes
    python -m appraisal_coordinator.cli plan workflows/full_appraisal.yaml

    # Log level comes from the coordinator config
    python -m appraisal_coordinator.cli --config coordinator.yaml plan workflows/full_appraisal.yaml
"""

import argparse
import sys

from appraisal_coordinator.definitions import load_workflow, plan_rounds, validate_workflow
from appraisal_coordinator.errors import WorkflowValidationError
from appraisal_coordinator.settings import CoordinatorSettings
from appraisal_engine.config import load_config
from appraisal_engine.logging import configure_logging


def _load(path: str):
    try:
        return load_workflow(path)
    except FileNotFoundError:
        print(f"Error: workflow file not found: {path}", file=sys.stderr)
    except WorkflowValidationError as e:
        print(f"✗ {path}", file=sys.stderr)
        for problem in e.problems:
            print(f"    {problem}", file=sys.stderr)
    return None


def cmd_validate(args) -> int:
    failures = 0
    for path in args.files:
        workflow = _load(path)
        if workflow is None:
            failures += 1
            continue
        problems = validate_workflow(workflow)
        if problems:
            failures += 1
            print(f"✗ {path}", file=sys.stderr)
            for problem in problems:
                print(f"    {problem}", file=sys.stderr)
        else:
            print(f"✓ {path} ({workflow.name}, {len(workflow.tasks)} tasks)")
    return 1 if failures else 0


def cmd_plan(args) -> int:
    workflow = _load(args.file)
    if workflow is None:
        return 1

    rounds, unreachable = plan_rounds(workflow)
    print(f"\n{'═' * 70}")
    print(f"  PLAN: {workflow.name} ({len(workflow.tasks)} tasks, {len(rounds)} rounds)")
    print(f"{'─' * 70}")
    for n, layer in enumerate(rounds, start=1):
        print(f"  round {n}:")
        for i in layer:
            wt = workflow.tasks[i]
            flags = []
            if wt.optional:
                flags.append("optional")
            if wt.fallback:
                flags.append(f"fallback={wt.fallback.value}")
            deps = f" ← {wt.dependencies}" if wt.dependencies else ""
            suffix = f" [{', '.join(flags)}]" if flags else ""
            print(f"    {i:3d}  {wt.task.task_type}{deps}{suffix}")
    if unreachable:
        print(f"\n  UNREACHABLE: {unreachable}")
    print(f"{'═' * 70}\n")
    return 1 if unreachable else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="appraisal-coordinator",
        description="Inspect appraisal workflow definitions",
    )
    parser.add_argument("--config", default="coordinator.yaml",
                        help="Coordinator config file (default: coordinator.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Validate workflow YAML files")
    p_validate.add_argument("files", nargs="+")
    p_validate.set_defaults(func=cmd_validate)

    p_plan = sub.add_parser("plan", help="Show the round plan of a workflow")
    p_plan.add_argument("file")
    p_plan.set_defaults(func=cmd_plan)

    args = parser.parse_args(argv)
    settings = CoordinatorSettings.from_config(load_config(base_path=args.config))
    configure_logging(level=settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
