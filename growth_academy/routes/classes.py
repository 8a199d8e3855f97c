from fastapi import APIRouter, Depends, HTTPException
from growth_academy.errors import StoreUnavailable
from growth_academy.services.catalog import subject_content
from growth_academy.services.context_registry import ClientContext, ContextRegistry
from growth_academy.utils.auth_utils import get_active_context, get_context_registry

router = APIRouter()

@router.get("/{class_id}/{subject_id}")
async def get_subject_content(
    class_id: str,
    subject_id: str,
    context: ClientContext = Depends(get_active_context),
    registry: ContextRegistry = Depends(get_context_registry),
):
    """Notes, quizzes and tests available for a subject"""
    try:
        content = subject_content(registry.store, class_id, subject_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"class_id": class_id, "subject_id": subject_id, **content}
