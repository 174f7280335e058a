"""Drive an InterviewEngine session through its steps in tests.

Each write is followed by ``db.commit()``, one transaction per call the way
the API handles requests, so notifications and change events go out.
"""

from tto_db.models.enums import InterviewStep
from tto_protocol.models.answers import (
    DCESubmission,
    DemographicsAnswers,
    EQ5DAnswers,
    TTOSubmission,
)

VALID_EQ5D = EQ5DAnswers(
    mobility=1,
    self_care=1,
    usual_activities=2,
    pain_discomfort=2,
    anxiety_depression=1,
    vas_score=80,
)

# Ten distinct standard answers, so no session-level flag fires
DISTINCT_YEARS = [9.5, 9.0, 8.5, 8.0, 7.5, 7.0, 6.5, 6.0, 5.5, 5.0]


def tto_answer(years: float, *, moves: int = 4, seconds: int = 25) -> TTOSubmission:
    return TTOSubmission(chosen_years=years, moves_count=moves, time_spent_seconds=seconds)


async def fill_step(engine, db, actor, session_id, step, *, tto_years=None):
    """Record whatever ``step`` needs before it can be left."""
    years = list(tto_years or DISTINCT_YEARS)
    if step == InterviewStep.WARMUP:
        await engine.submit_eq5d(db, actor, session_id, VALID_EQ5D)
        await db.commit()
    elif step == InterviewStep.TTO:
        view = await engine.get_current_step(db, actor, session_id)
        while view.tto_task is not None:
            await engine.submit_tto(
                db, actor, session_id, tto_answer(years[view.tto_task - 1])
            )
            await db.commit()
            view = await engine.get_current_step(db, actor, session_id)
    elif step == InterviewStep.DCE:
        view = await engine.get_current_step(db, actor, session_id)
        while view.dce_task is not None:
            await engine.submit_dce(
                db,
                actor,
                session_id,
                DCESubmission(chosen_state=view.dce_pair.state_a, time_spent_seconds=8),
            )
            await db.commit()
            view = await engine.get_current_step(db, actor, session_id)
    elif step == InterviewStep.DEMOGRAPHICS:
        await engine.save_demographics(
            db, actor, session_id, DemographicsAnswers(age=42, gender="female")
        )
        await db.commit()


async def advance_to(engine, db, actor, session_id, target, *, tto_years=None):
    """Fill and advance until the session sits on ``target``."""
    view = await engine.get_current_step(db, actor, session_id)
    while InterviewStep(view.step).index < InterviewStep(target).index:
        step = InterviewStep(view.step)
        if view.missing is not None:
            await fill_step(engine, db, actor, session_id, step, tto_years=tto_years)
        view = await engine.advance(db, actor, session_id, from_step=step)
        await db.commit()
    return view
