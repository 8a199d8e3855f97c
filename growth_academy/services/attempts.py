"""Persistence of quiz attempts and the reads behind the result and history pages."""

from typing import List, Optional
import asyncio
import logging

from pydantic import ValidationError

from growth_academy.config import settings
from growth_academy.database import RecordStore
from growth_academy.errors import StoreUnavailable, SubmissionFailed
from growth_academy.models import ActivityEntry, QuizAttempt, QuizDefinition
from growth_academy.utils.time_utils import get_ist_time

logger = logging.getLogger(__name__)


def load_quiz(store: RecordStore, quiz_id: str) -> Optional[QuizDefinition]:
    data = store.get(settings.quizzes_collection, quiz_id)
    if not data:
        return None
    return QuizDefinition.model_validate(data)


class AttemptRecorder:
    """Writes attempts with retry and linear backoff"""

    def __init__(self, store: RecordStore, max_retries: Optional[int] = None, backoff: Optional[float] = None):
        self.store = store
        self.max_retries = settings.attempt_max_retries if max_retries is None else max_retries
        self.backoff = settings.attempt_retry_backoff if backoff is None else backoff

    async def record(self, attempt: QuizAttempt, quiz: Optional[QuizDefinition] = None) -> QuizAttempt:
        payload = attempt.to_store()
        record_id = None

        for attempt_no in range(self.max_retries + 1):
            try:
                record_id = self.store.add(settings.attempts_collection, payload)
                break
            except StoreUnavailable as e:
                logger.warning(
                    f"Saving attempt for quiz {attempt.quiz_id} failed "
                    f"(attempt {attempt_no + 1}/{self.max_retries + 1}): {e}"
                )
                if attempt_no == self.max_retries:
                    raise SubmissionFailed(
                        "Your answers could not be saved. Please retry the submission."
                    ) from e
                await asyncio.sleep(self.backoff * (attempt_no + 1))

        saved = attempt.model_copy(update={"id": record_id})
        logger.info(f"Stored attempt {record_id} for quiz {attempt.quiz_id}: {saved.score}/{saved.total_questions}")

        if quiz is not None:
            self.log_completion(quiz)
        return saved

    def log_completion(self, quiz: QuizDefinition):
        """Record a 'Completed Quiz' activity entry; the attempt stands even if this fails"""
        entry = ActivityEntry(
            type="Completed Quiz",
            title=quiz.title,
            subject=quiz.subject_id,
            class_id=quiz.class_id,
            timestamp=get_ist_time(),
        )
        try:
            self.store.add(settings.activity_collection, entry.to_store())
        except StoreUnavailable as e:
            logger.error(f"Could not log activity for quiz {quiz.id}: {e}")


def get_attempt(store: RecordStore, attempt_id: str) -> Optional[QuizAttempt]:
    data = store.get(settings.attempts_collection, attempt_id)
    if not data:
        return None
    return QuizAttempt.model_validate(data)


def list_attempts(store: RecordStore, student_name: Optional[str] = None) -> List[QuizAttempt]:
    """Attempts, newest first"""
    filters = {"studentName": student_name} if student_name else None
    attempts = []
    for row in store.list(settings.attempts_collection, filters):
        try:
            attempts.append(QuizAttempt.model_validate(row))
        except ValidationError as e:
            logger.error(f"Skipping malformed attempt {row.get('id')}: {e}")
    return sorted(attempts, key=lambda a: a.timestamp, reverse=True)
