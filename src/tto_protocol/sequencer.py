"""StepSequencer — the interview step state machine.

Steps run in ``InterviewStep`` declaration order::

    consent -> warmup -> practice -> tto (x N) -> feedback -> dce (x M)
            -> demographics -> complete

Forward moves go one step at a time and only from the session's actual
current step.  A data-collecting step cannot be left until its child rows
exist, because the child write and the step update are separate writes:

    warmup        the EQ-5D-5L row
    tto           TTO rows numbered exactly 1..N
    dce           DCE rows numbered exactly 1..M
    demographics  the demographics row

Backward moves may target any earlier step and never delete data.
"""

from dataclasses import dataclass

from tto_db.models.enums import InterviewStep, SessionStatus

from tto_protocol.errors import InvalidTransitionError, StepIncompleteError

STEP_ORDER: tuple[InterviewStep, ...] = tuple(InterviewStep)


@dataclass(frozen=True)
class StepProgress:
    """Which child rows a session already has."""

    eq5d_done: bool = False
    tto_tasks: tuple[int, ...] = ()
    dce_tasks: tuple[int, ...] = ()
    demographics_done: bool = False


class StepSequencer:
    def __init__(self, tto_task_count: int, dce_task_count: int) -> None:
        self.tto_task_count = tto_task_count
        self.dce_task_count = dce_task_count

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def advance(
        self,
        current_step: InterviewStep,
        from_step: InterviewStep,
        progress: StepProgress,
    ) -> InterviewStep:
        """Return the step after ``from_step``.

        Raises:
            InvalidTransitionError: ``from_step`` is not the current step
            StepIncompleteError: the current step's data is missing
        """
        current_step = InterviewStep(current_step)
        from_step = InterviewStep(from_step)
        if from_step != current_step:
            raise InvalidTransitionError(
                f"Cannot advance from {from_step.value}: session is at {current_step.value}"
            )
        if current_step == InterviewStep.COMPLETE:
            return current_step

        missing = self.missing_requirement(current_step, progress)
        if missing is not None:
            raise StepIncompleteError(
                f"Cannot leave {current_step.value}: {missing}"
            )
        return STEP_ORDER[current_step.index + 1]

    def back(
        self,
        current_step: InterviewStep,
        status: SessionStatus,
        to_step: InterviewStep | None = None,
    ) -> InterviewStep:
        """Return the earlier step to move to (default: the previous one).

        Raises:
            InvalidTransitionError: at consent, on a finished session, or
                when ``to_step`` is not strictly earlier
        """
        current_step = InterviewStep(current_step)
        if SessionStatus(status) != SessionStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Cannot go back: session is {SessionStatus(status).value}"
            )
        if current_step.index == 0:
            raise InvalidTransitionError("Cannot go back from the first step")
        if to_step is None:
            return STEP_ORDER[current_step.index - 1]
        to_step = InterviewStep(to_step)
        if to_step.index >= current_step.index:
            raise InvalidTransitionError(
                f"Cannot go back from {current_step.value} to {to_step.value}"
            )
        return to_step

    # ------------------------------------------------------------------
    # Guards and cursors
    # ------------------------------------------------------------------

    def missing_requirement(
        self, step: InterviewStep, progress: StepProgress
    ) -> str | None:
        """Describe the child write blocking ``step``, or ``None``."""
        if step == InterviewStep.WARMUP and not progress.eq5d_done:
            return "EQ-5D-5L answers not recorded"
        if step == InterviewStep.TTO:
            expected = tuple(range(1, self.tto_task_count + 1))
            if tuple(sorted(progress.tto_tasks)) != expected:
                return (
                    f"{len(progress.tto_tasks)} of {self.tto_task_count} "
                    "TTO tasks recorded"
                )
        if step == InterviewStep.DCE:
            expected = tuple(range(1, self.dce_task_count + 1))
            if tuple(sorted(progress.dce_tasks)) != expected:
                return (
                    f"{len(progress.dce_tasks)} of {self.dce_task_count} "
                    "choice tasks recorded"
                )
        if step == InterviewStep.DEMOGRAPHICS and not progress.demographics_done:
            return "demographics not recorded"
        return None

    def next_tto_task(self, progress: StepProgress) -> int | None:
        """Next TTO task number to collect; ``None`` when all N are done."""
        return self._next_task(progress.tto_tasks, self.tto_task_count)

    def next_dce_task(self, progress: StepProgress) -> int | None:
        return self._next_task(progress.dce_tasks, self.dce_task_count)

    @staticmethod
    def _next_task(done: tuple[int, ...], total: int) -> int | None:
        # Rows are inserted strictly in order, so the cursor is count + 1
        n = len(done) + 1
        return n if n <= total else None
