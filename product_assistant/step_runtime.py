from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

ContextT = TypeVar("ContextT")


@dataclass
class PipelineStep(Generic[ContextT]):
    """One named unit of work in an ordered request pipeline."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None
    always_run: bool = False
    recover: Optional[Callable[[ContextT, Exception], None]] = None


class StepRunner(Generic[ContextT]):
    """Deterministic runner for a fixed list of pipeline steps."""

    def __init__(self, steps: List[PipelineStep[ContextT]]) -> None:
        """Purpose: Initialize the runner with an ordered list of steps.
        Inputs/Outputs: Input is a list of PipelineStep; no return value.
        Side Effects / State: Stores a copy of the step list.
        Dependencies: None beyond PipelineStep definitions.
        Failure Modes: None; assumes valid callables in steps.
        If Removed: The query orchestrator has nothing to execute.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        # Copy so later list mutation cannot reorder a running pipeline.
        self._steps = list(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> ContextT:
        """Purpose: Execute steps in order honoring skip, always-run and recovery rules.
        Inputs/Outputs: Input is a mutable context object; returns the same context.
        Side Effects / State: Invokes step functions that mutate context.
        Dependencies: Depends on PipelineStep.fn, skip_if and recover semantics.
        Failure Modes: An exception in a step without ``recover`` propagates;
            with ``recover`` it is handed over and the pipeline continues.
        If Removed: Request handling cannot run.
        Testing Notes: Verify skip_if, always_run and recover with simple steps.
        """
        # always_run steps ignore skip_if; recover turns a failure into state.
        for step in self._steps:
            if not step.always_run and step.skip_if and step.skip_if(context):
                continue
            try:
                step.fn(context)
            except Exception as exc:
                if step.recover is None:
                    raise
                step.recover(context, exc)
        return context
