from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from typing import Optional
import logging
from growth_academy.errors import StoreUnavailable
from growth_academy.services.attempts import get_attempt, list_attempts, load_quiz
from growth_academy.services.context_registry import ClientContext, ContextRegistry
from growth_academy.services.scoring import build_result_view
from growth_academy.utils.auth_utils import get_active_context, get_context_registry, is_admin_context
from growth_academy.utils.time_utils import format_duration, format_time_for_display

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/history")
async def get_quiz_history(
    student_name: Optional[str] = None,
    context: ClientContext = Depends(get_active_context),
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Past attempts, newest first; only the administrator may list everyone"""
    if not student_name and not is_admin_context(context):
        raise HTTPException(status_code=400, detail="student_name is required")
    try:
        attempts = list_attempts(registry.store, student_name)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "attempts": [
            {
                "attempt_id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "student_name": attempt.student_name,
                "score": attempt.score,
                "total_questions": attempt.total_questions,
                "time_taken_label": format_duration(attempt.time_taken),
                "timestamp": attempt.timestamp.isoformat(),
                "completed_at": format_time_for_display(attempt.timestamp),
                "result_path": f"/results/{attempt.id}",
            }
            for attempt in attempts
        ],
        "total": len(attempts),
    }

@router.get("/{attempt_id}")
async def get_result(
    attempt_id: str,
    context: ClientContext = Depends(get_active_context),
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Scored review of one attempt"""
    try:
        attempt = get_attempt(registry.store, attempt_id)
        if not attempt:
            raise HTTPException(status_code=404, detail="Result not found")
        quiz = load_quiz(registry.store, attempt.quiz_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValidationError as e:
        logger.error(f"Malformed attempt {attempt_id} or its quiz: {e}")
        raise HTTPException(status_code=422, detail="Result data is malformed")
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return build_result_view(attempt, quiz)
