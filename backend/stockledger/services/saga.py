# Overview: Ordered multi-step writes with optional per-step compensation.

"""
Saga runner

The store gives us no multi-statement transaction across a command, so every
multi-step command is an ordered list of steps, each committed on its own:

    step.action(results) forward write, commits before the next step runs;
                         results maps earlier step names to their return values
    step.compensation()  optional undo, called with the action's result

RULES:
1. Steps run strictly in sequence; later steps may read what earlier ones wrote.
2. If the FIRST step fails nothing is committed: the original exception is
   re-raised untouched (so callers can retry it, e.g. on StaleDataError).
3. If a later step fails, completed steps that declare a compensation are
   undone in reverse order. Steps without one stay committed.
4. The failure is surfaced as SagaAborted with enough context for a person to
   finish or clean up by hand.

Only the stock write in ledger_service declares a compensation. Order creation
and the bulk clears have none.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from flask import current_app

from ..extensions import db


@dataclass(frozen=True)
class SagaStep:
    name: str
    action: Callable[[dict[str, Any]], Any]
    compensation: Callable[[Any], None] | None = None


class SagaAborted(ValueError):
    """A multi-step command stopped after committing some of its steps."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _compensate(saga: str, completed: list[tuple[SagaStep, Any]]) -> tuple[list[str], list[str]]:
    compensated: list[str] = []
    failed: list[str] = []
    for step, result in reversed(completed):
        if step.compensation is None:
            continue
        try:
            step.compensation(result)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Compensation for %s/%s failed", saga, step.name)
            failed.append(step.name)
        else:
            compensated.append(step.name)
    return compensated, failed


def run_saga(name: str, steps: Iterable[SagaStep]) -> dict[str, Any]:
    """Run steps in order and return {step name: action result}."""
    results: dict[str, Any] = {}
    completed: list[tuple[SagaStep, Any]] = []

    for step in steps:
        try:
            result = step.action(results)
        except Exception as exc:
            db.session.rollback()
            if not completed:
                raise

            compensated, failed = _compensate(name, completed)
            left_committed = [
                s.name for s, _ in completed if s.name not in compensated
            ]
            current_app.logger.warning(
                "Saga %s aborted at %s (committed: %s, compensated: %s): %s",
                name, step.name, left_committed, compensated, exc,
            )
            raise SagaAborted(
                f"{name} failed at step '{step.name}': {exc}",
                details={
                    "saga": name,
                    "failed_step": step.name,
                    "error": str(exc),
                    "completed_steps": [s.name for s, _ in completed],
                    "compensated_steps": compensated,
                    "compensation_failures": failed,
                    "left_committed": left_committed,
                },
            ) from exc

        results[step.name] = result
        completed.append((step, result))

    return results
