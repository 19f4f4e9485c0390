"""In-memory record of one pipeline run: seven stage slots plus the run status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from pydantic import BaseModel

from tunedup.core.constants import STEP_ORDER, PipelineStatus, PipelineStep
from tunedup.core.exceptions import PipelineError

# --------------------------------------------------------------------------- #
# Slot variants
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class NotStarted:
    kind: str = "not_started"


@dataclass(frozen=True)
class Done:
    output: BaseModel
    tokens_cost: int
    kind: str = "done"


@dataclass(frozen=True)
class Failed:
    error: str
    kind: str = "failed"


Slot = Union[NotStarted, Done, Failed]


# --------------------------------------------------------------------------- #
# Run status
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class RunStatus:
    """``Pending``, ``Running(index)``, ``Completed`` or ``Failed(index)``."""

    status: PipelineStatus = PipelineStatus.PENDING
    index: int | None = None

    @property
    def terminal(self) -> bool:
        return self.status in (PipelineStatus.COMPLETED, PipelineStatus.FAILED)


class PipelineState:
    """Ordered stage slots for a single run.

    ``Done`` slots are filled strictly in stage order, and once any slot is
    ``Failed`` nothing later may become ``Done``. The run status only moves
    forward. Every illegal transition raises :class:`PipelineError`.
    """

    def __init__(self, steps: Iterable[PipelineStep] = STEP_ORDER) -> None:
        self._order: tuple[PipelineStep, ...] = tuple(steps)
        if not self._order:
            raise PipelineError("PipelineState needs at least one step")
        self._slots: dict[PipelineStep, Slot] = {step: NotStarted() for step in self._order}
        self._run = RunStatus()

    def __repr__(self) -> str:
        done = sum(1 for slot in self._slots.values() if isinstance(slot, Done))
        return f"PipelineState(status={self._run.status.value!r}, done={done}/{len(self._order)})"

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def steps(self) -> tuple[PipelineStep, ...]:
        return self._order

    @property
    def run_status(self) -> RunStatus:
        return self._run

    @property
    def status(self) -> PipelineStatus:
        return self._run.status

    def slot(self, step: PipelineStep) -> Slot:
        return self._slots[self._known(step)]

    def output(self, step: PipelineStep) -> BaseModel | None:
        slot = self.slot(step)
        return slot.output if isinstance(slot, Done) else None

    def partial(self) -> dict[PipelineStep, BaseModel]:
        """Outputs of the ``Done`` prefix, in stage order."""
        outputs: dict[PipelineStep, BaseModel] = {}
        for step in self._order:
            slot = self._slots[step]
            if not isinstance(slot, Done):
                break
            outputs[step] = slot.output
        return outputs

    @property
    def has_partial(self) -> bool:
        return isinstance(self._slots[self._order[0]], Done)

    @property
    def total_tokens(self) -> int:
        return sum(slot.tokens_cost for slot in self._slots.values() if isinstance(slot, Done))

    @property
    def failed_step(self) -> PipelineStep | None:
        for step in self._order:
            if isinstance(self._slots[step], Failed):
                return step
        return None

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def start(self, step: PipelineStep) -> None:
        """Move the run to ``Running(index of step)``."""
        index = self._index(step)
        if self._run.terminal:
            raise PipelineError(f"Run already {self._run.status.value}; cannot start {step.value!r}")
        if self._run.index is not None and index <= self._run.index:
            raise PipelineError(f"Cannot start {step.value!r}: run is already past it")
        self._require_done_before(index, step)
        self._run = RunStatus(PipelineStatus.RUNNING, index)

    def mark_done(self, step: PipelineStep, output: BaseModel, tokens_cost: int) -> None:
        index = self._index(step)
        if self._run != RunStatus(PipelineStatus.RUNNING, index):
            raise PipelineError(f"Stage {step.value!r} is not the running stage")
        if tokens_cost < 0:
            raise PipelineError(f"tokens_cost must be non-negative, got {tokens_cost}")
        self._require_done_before(index, step)
        self._slots[step] = Done(output=output, tokens_cost=tokens_cost)

    def mark_failed(self, step: PipelineStep, error: str) -> None:
        index = self._index(step)
        if self._run != RunStatus(PipelineStatus.RUNNING, index):
            raise PipelineError(f"Stage {step.value!r} is not the running stage")
        if not isinstance(self._slots[step], NotStarted):
            raise PipelineError(f"Stage {step.value!r} already settled")
        self._slots[step] = Failed(error=error)
        self._run = RunStatus(PipelineStatus.FAILED, index)

    def complete(self) -> None:
        last = len(self._order) - 1
        if self._run != RunStatus(PipelineStatus.RUNNING, last):
            raise PipelineError("Cannot complete a run that has not reached its last stage")
        if not all(isinstance(slot, Done) for slot in self._slots.values()):
            raise PipelineError("Cannot complete a run with unfinished stages")
        self._run = RunStatus(PipelineStatus.COMPLETED, None)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _known(self, step: PipelineStep) -> PipelineStep:
        step = PipelineStep(step)
        if step not in self._slots:
            raise PipelineError(f"Unknown stage {step.value!r}")
        return step

    def _index(self, step: PipelineStep) -> int:
        return self._order.index(self._known(step))

    def _require_done_before(self, index: int, step: PipelineStep) -> None:
        for earlier in self._order[:index]:
            if not isinstance(self._slots[earlier], Done):
                raise PipelineError(
                    f"Stage {step.value!r} cannot run before {earlier.value!r} is done"
                )
