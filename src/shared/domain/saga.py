"""Compensating-action saga for multi-step writes.

Each forward step that succeeds registers the action that undoes it.  If
anything inside the ``with`` block raises, the registered compensations
run in reverse order and the original exception propagates unchanged::

    with Saga("order.create") as saga:
        saga.step(
            lambda: ledger.reserve(variant_id, 2),
            compensate=lambda: ledger.release(variant_id, 2),
            label="reserve",
        )
        persist()

A compensation that itself fails is logged and recorded in
``saga.failed_compensations``; the remaining compensations still run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Compensation:
    label: str
    action: Callable[[], object]


class Saga:
    def __init__(self, name: str) -> None:
        self.name = name
        self._compensations: List[Compensation] = []
        self.failed_compensations: List[Compensation] = []
        self.compensated = False

    def __enter__(self) -> Saga:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.warning(
                "saga.aborted",
                saga=self.name,
                error=repr(exc),
                pending_compensations=len(self._compensations),
            )
            self.compensate()
        return False

    def step(
        self,
        action: Callable[[], T],
        compensate: Callable[[], object],
        label: Optional[str] = None,
    ) -> T:
        """Run *action*; on success remember *compensate* for rollback."""
        result = action()
        label = label or f"step-{len(self._compensations) + 1}"
        self._compensations.append(Compensation(label=label, action=compensate))
        return result

    def compensate(self) -> None:
        """Undo every completed step, newest first.  Runs at most once."""
        if self.compensated:
            return
        self.compensated = True
        while self._compensations:
            compensation = self._compensations.pop()
            try:
                compensation.action()
            except Exception:
                self.failed_compensations.append(compensation)
                logger.exception(
                    "saga.compensation_failed",
                    saga=self.name,
                    step=compensation.label,
                )
            else:
                logger.info(
                    "saga.compensated", saga=self.name, step=compensation.label
                )
