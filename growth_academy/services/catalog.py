from typing import Dict, List
import logging

from pydantic import ValidationError

from growth_academy.config import settings
from growth_academy.database import RecordStore
from growth_academy.models import NoteContent, QuizDefinition, TestContent, parse_content

logger = logging.getLogger(__name__)


def _collections() -> Dict[str, str]:
    return {
        "note": settings.notes_collection,
        "test": settings.tests_collection,
        "quiz": settings.quizzes_collection,
    }


def content_summary(content) -> dict:
    """Listing entry for one content item; quizzes never expose correct answers"""
    summary = {
        "id": content.id,
        "kind": content.kind,
        "title": content.title,
        "description": content.description,
        "price_inr": content.price_inr,
    }
    if isinstance(content, NoteContent):
        summary["file_url"] = content.file_url
    elif isinstance(content, TestContent):
        summary["test_file_url"] = content.test_file_url
        summary["answer_file_url"] = content.answer_file_url
    elif isinstance(content, QuizDefinition):
        summary["time_limit"] = content.time_limit
        summary["question_count"] = len(content.questions)
    else:
        raise TypeError(f"Unknown content kind: {content!r}")
    return summary


def subject_content(store: RecordStore, class_id: str, subject_id: str) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[dict]] = {"notes": [], "quizzes": [], "tests": []}
    keys = {"note": "notes", "quiz": "quizzes", "test": "tests"}

    for kind, collection in _collections().items():
        rows = store.list(collection, {"classId": class_id, "subjectId": subject_id})
        for row in rows:
            try:
                content = parse_content(dict(row, kind=kind))
            except ValidationError as e:
                logger.error(f"Skipping malformed {kind} {row.get('id')}: {e}")
                continue
            grouped[keys[content.kind]].append(content_summary(content))
    return grouped
