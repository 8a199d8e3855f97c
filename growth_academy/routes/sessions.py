from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError
from typing import Optional
from growth_academy.errors import QuizStateError, QuizValidationError, StoreUnavailable, SubmissionFailed
from growth_academy.services.attempts import load_quiz
from growth_academy.services.context_registry import ClientContext, ContextRegistry
from growth_academy.services.quiz_engine import QuizEngine
from growth_academy.utils.auth_utils import get_active_context, get_context_registry
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

class StartQuizRequest(BaseModel):
    student_name: Optional[str] = None

class AnswerRequest(BaseModel):
    option: int

def get_run(context: ClientContext, run_id: str) -> QuizEngine:
    engine = context.quiz_runs.get(run_id)
    if not engine:
        raise HTTPException(status_code=404, detail="Quiz run not found")
    return engine

def run_view(run_id: str, engine: QuizEngine) -> dict:
    view = engine.snapshot()
    view["run_id"] = run_id
    if view["attempt_id"]:
        view["result_path"] = f"/results/{view['attempt_id']}"
    return view

def submission_failed(run_id: str, engine: QuizEngine, error: SubmissionFailed) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"message": str(error), "retry_path": f"/quizzes/runs/{run_id}/retry", "run": run_view(run_id, engine)}
    )

@router.post("/{quiz_id}/start")
async def start_quiz(
    quiz_id: str,
    request: StartQuizRequest,
    context: ClientContext = Depends(get_active_context),
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Start a timed quiz run"""
    try:
        quiz = load_quiz(registry.store, quiz_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValidationError as e:
        logger.error(f"Malformed quiz {quiz_id}: {e}")
        raise HTTPException(status_code=422, detail="Quiz definition is malformed")
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")

    try:
        engine = QuizEngine(quiz, request.student_name, registry.recorder)
    except QuizValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    run_id = context.add_quiz_run(engine)
    engine.start()
    logger.info(f"Context {context.context_id} started quiz {quiz_id} as run {run_id}")
    return run_view(run_id, engine)

@router.get("/runs/{run_id}")
async def get_quiz_run(run_id: str, context: ClientContext = Depends(get_active_context)):
    return run_view(run_id, get_run(context, run_id))

@router.post("/runs/{run_id}/answer")
async def answer_question(run_id: str, request: AnswerRequest, context: ClientContext = Depends(get_active_context)):
    engine = get_run(context, run_id)
    try:
        engine.select_answer(request.option)
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run_view(run_id, engine)

@router.post("/runs/{run_id}/next")
async def next_question(run_id: str, context: ClientContext = Depends(get_active_context)):
    engine = get_run(context, run_id)
    try:
        engine.next_question()
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run_view(run_id, engine)

@router.post("/runs/{run_id}/previous")
async def previous_question(run_id: str, context: ClientContext = Depends(get_active_context)):
    engine = get_run(context, run_id)
    try:
        engine.previous_question()
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return run_view(run_id, engine)

@router.post("/runs/{run_id}/submit")
async def request_submission(run_id: str, context: ClientContext = Depends(get_active_context)):
    """Ask for confirmation before freezing the answers"""
    engine = get_run(context, run_id)
    try:
        message = engine.request_submission()
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "confirmation_required": True,
        "title": "Ready to Submit?",
        "message": message,
        "run": run_view(run_id, engine),
    }

@router.post("/runs/{run_id}/cancel-submit")
async def cancel_submission(run_id: str, context: ClientContext = Depends(get_active_context)):
    """Go back to reviewing answers"""
    engine = get_run(context, run_id)
    engine.cancel_submission()
    return run_view(run_id, engine)

@router.post("/runs/{run_id}/confirm")
async def confirm_submission(run_id: str, context: ClientContext = Depends(get_active_context)):
    engine = get_run(context, run_id)
    try:
        await engine.confirm_submission()
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SubmissionFailed as e:
        raise submission_failed(run_id, engine, e)
    return run_view(run_id, engine)

@router.post("/runs/{run_id}/retry")
async def retry_submission(run_id: str, context: ClientContext = Depends(get_active_context)):
    engine = get_run(context, run_id)
    try:
        await engine.retry_submission()
    except QuizStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SubmissionFailed as e:
        raise submission_failed(run_id, engine, e)
    return run_view(run_id, engine)

@router.delete("/runs/{run_id}")
async def leave_quiz(run_id: str, context: ClientContext = Depends(get_active_context)):
    """Leave the quiz page; the countdown stops"""
    engine = context.close_quiz_run(run_id)
    if not engine:
        raise HTTPException(status_code=404, detail="Quiz run not found")
    return {"message": "Left quiz", "submission_state": engine.submission_state.value}
