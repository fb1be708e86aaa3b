# Overview: Compensating-action log used by multi-step billing operations.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

from ..extensions import db


@dataclass
class _Step:
    label: str
    undo: Callable[[], object]


@dataclass
class CompensationLog:
    """
    Records how to undo each completed step of an operation.

    Usage:
        log = CompensationLog()
        log.run("restore stock", do=..., undo=...)
        ...
        except ShopledgerError:
            log.unwind()
            raise

    Steps are undone in reverse order. A step whose `do` raises is not
    recorded. If an undo fails the remaining undos still run, and the first
    failure is re-raised once the log is empty.
    """
    steps: list[_Step] = field(default_factory=list)

    def run(self, label: str, *, do: Callable[[], object], undo: Callable[[], object]):
        result = do()
        self.steps.append(_Step(label=label, undo=undo))
        return result

    def unwind(self) -> list[str]:
        undone: list[str] = []
        first_error: Exception | None = None
        while self.steps:
            step = self.steps.pop()
            try:
                step.undo()
                undone.append(step.label)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return undone

    def discard(self) -> None:
        """Forget recorded steps once the operation has succeeded."""
        self.steps.clear()


def abort_operation(log: CompensationLog, *, commit: bool) -> None:
    """
    Undo a failed operation's completed steps.

    When the session is unusable (a flush failed) the steps cannot be
    replayed and only the rollback cleans up. With commit=True the service
    owns the transaction and always rolls it back.
    """
    try:
        if db.session.is_active:
            undone = log.unwind()
            if undone:
                current_app.logger.info("Compensated steps: %s", ", ".join(undone))
        else:
            log.discard()
    except Exception:
        current_app.logger.exception("Compensation failed")
        if not commit:
            raise
    finally:
        if commit:
            db.session.rollback()
