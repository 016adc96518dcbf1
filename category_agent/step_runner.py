from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional


@dataclass
class PipelineStep:
    """Step descriptor for the async dispatch pipeline."""
    name: str
    fn: Callable[[object], Awaitable[None]]
    skip_if: Optional[Callable[[object], bool]] = None
    always_run: bool = False


class StepRunner:
    """Runs async steps in order against one mutable context."""

    def __init__(self, steps: list[PipelineStep]) -> None:
        """Purpose: Initialize the runner with an ordered list of steps.
        Inputs/Outputs: Input is a list of PipelineStep; no return value.
        Side Effects / State: Stores the step list for later execution.
        Dependencies: None beyond PipelineStep definitions.
        Failure Modes: None; assumes awaitable callables in steps.
        If Removed: Dispatch steps are never executed and no response is produced.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        self._steps = steps

    async def run(self, context: object) -> None:
        """Purpose: Await steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step coroutines that may mutate context.
        Dependencies: Depends on PipelineStep.fn and PipelineStep.skip_if semantics.
        Failure Modes: Exceptions in steps propagate; always_run steps after a
            failing step are not reached.
        If Removed: The dispatcher cannot move through its states.
        Testing Notes: Verify skip_if and always_run logic with simple steps.
        """
        # Iterate steps and honor always_run/skip_if guards.
        for step in self._steps:
            if step.always_run:
                await step.fn(context)
                continue
            if step.skip_if and step.skip_if(context):
                continue
            await step.fn(context)
