"""Timed multiple-choice quiz: navigation, countdown, and exactly-once submission."""

from enum import Enum
from typing import List, Optional
import asyncio
import logging

from growth_academy.errors import QuizStateError, QuizValidationError, SubmissionFailed
from growth_academy.models import UNANSWERED, QuizAttempt, QuizDefinition
from growth_academy.services.attempts import AttemptRecorder
from growth_academy.services.scoring import build_attempt
from growth_academy.utils.time_utils import format_countdown

logger = logging.getLogger(__name__)

CONFIRM_SUBMISSION_MESSAGE = (
    "Are you sure you want to finish the quiz? You cannot change your answers after submitting."
)


class SubmissionState(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class QuizEngine:
    def __init__(self, quiz: QuizDefinition, student_name: str, recorder: AttemptRecorder, tick_seconds: float = 1.0):
        if not quiz.questions:
            raise QuizValidationError(f"Quiz {quiz.id} has no questions")

        self.quiz = quiz
        self.student_name = (student_name or "").strip() or "Student"
        self.recorder = recorder
        self.tick_seconds = tick_seconds

        self.current_index = 0
        self.answers: List[int] = [UNANSWERED] * len(quiz.questions)
        self.remaining_seconds = quiz.time_limit_seconds
        self.submission_state = SubmissionState.IN_PROGRESS
        self.confirmation_pending = False
        self.auto_submitted = False
        self.attempt: Optional[QuizAttempt] = None
        self.last_error: Optional[str] = None

        self._pending_attempt: Optional[QuizAttempt] = None
        self._persisting = False
        self._timer_task: Optional[asyncio.Task] = None

    @property
    def total_questions(self) -> int:
        return len(self.quiz.questions)

    @property
    def is_last_question(self) -> bool:
        return self.current_index == self.total_questions - 1

    @property
    def can_go_previous(self) -> bool:
        return self.in_progress and self.current_index > 0

    @property
    def can_go_next(self) -> bool:
        return self.in_progress and not self.is_last_question

    @property
    def in_progress(self) -> bool:
        return self.submission_state == SubmissionState.IN_PROGRESS

    # Answering and navigation

    def _require_in_progress(self, action: str):
        if not self.in_progress:
            raise QuizStateError(f"Cannot {action}: quiz is {self.submission_state.value}")

    def select_answer(self, option: int):
        self._require_in_progress("change answers")
        options = self.quiz.questions[self.current_index].options
        if not 0 <= option < len(options):
            raise QuizStateError(f"Option {option} does not exist for this question")
        self.answers[self.current_index] = option

    def next_question(self):
        if not self.can_go_next:
            raise QuizStateError("Already on the last question")
        self.current_index += 1

    def previous_question(self):
        if not self.can_go_previous:
            raise QuizStateError("Already on the first question")
        self.current_index -= 1

    # Timer

    def start(self):
        """Start the one-second countdown; requires a running event loop"""
        if self._timer_task and not self._timer_task.done():
            return
        self._timer_task = asyncio.create_task(self._run_countdown())

    async def _run_countdown(self):
        while self.in_progress and self.remaining_seconds > 0:
            try:
                await asyncio.sleep(self.tick_seconds)
                await self.tick()
            except asyncio.CancelledError:
                break
            except SubmissionFailed:
                # reported by _persist, the engine waits for retry_submission
                break

    async def tick(self) -> Optional[QuizAttempt]:
        if not self.in_progress:
            return None
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            logger.info(f"Time is up for quiz {self.quiz.id} ({self.student_name}), submitting")
            # Leaving the page cancels the timer, not the submission
            return await asyncio.shield(self.submit(auto_submit=True))
        return None

    def _stop_timer(self):
        task = self._timer_task
        self._timer_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def close(self):
        """Tear down the countdown; a submission already running completes on its own"""
        self._stop_timer()

    # Submission

    def request_submission(self) -> str:
        self._require_in_progress("submit")
        if not self.is_last_question:
            raise QuizStateError("Submission is only available on the last question")
        self.confirmation_pending = True
        return CONFIRM_SUBMISSION_MESSAGE

    def cancel_submission(self):
        self.confirmation_pending = False

    async def confirm_submission(self) -> Optional[QuizAttempt]:
        if not self.confirmation_pending:
            raise QuizStateError("Submission has not been requested")
        return await self.submit(auto_submit=False)

    async def submit(self, auto_submit: bool = False) -> Optional[QuizAttempt]:
        """Freeze the answers and persist them exactly once"""
        if not self.in_progress:
            return self.attempt

        self.submission_state = SubmissionState.SUBMITTING
        self.confirmation_pending = False
        self.auto_submitted = auto_submit
        if not auto_submit:
            # the countdown ends by itself once the quiz leaves in_progress
            self._stop_timer()
        self._pending_attempt = build_attempt(
            self.quiz, self.student_name, self.answers, self.remaining_seconds
        )
        return await self._persist()

    async def retry_submission(self) -> Optional[QuizAttempt]:
        if self.submission_state == SubmissionState.SUBMITTED:
            return self.attempt
        if self.submission_state != SubmissionState.SUBMITTING or self._pending_attempt is None:
            raise QuizStateError("Nothing to retry: the quiz has not been submitted")
        return await self._persist()

    async def _persist(self) -> Optional[QuizAttempt]:
        if self._persisting:
            return None
        self._persisting = True
        try:
            attempt = await self.recorder.record(self._pending_attempt, self.quiz)
        except SubmissionFailed as e:
            self.last_error = str(e)
            if self.auto_submitted:
                logger.error(f"Automatic submission of quiz {self.quiz.id} for {self.student_name} failed, waiting for retry: {e}")
            raise
        finally:
            self._persisting = False

        self.attempt = attempt
        self.last_error = None
        self.submission_state = SubmissionState.SUBMITTED
        return attempt

    # Presentation

    def snapshot(self) -> dict:
        question = self.quiz.questions[self.current_index]
        selected = self.answers[self.current_index]
        return {
            "quiz_id": self.quiz.id,
            "title": self.quiz.title,
            "description": self.quiz.description,
            "student_name": self.student_name,
            "question_number": self.current_index + 1,
            "total_questions": self.total_questions,
            "progress": (self.current_index + 1) / self.total_questions * 100,
            "question": {"id": question.id, "question": question.question, "options": list(question.options)},
            "selected_option": None if selected == UNANSWERED else selected,
            "remaining_seconds": self.remaining_seconds,
            "time_left": format_countdown(self.remaining_seconds),
            "can_go_previous": self.can_go_previous,
            "can_go_next": self.can_go_next,
            "can_submit": self.in_progress and self.is_last_question,
            "confirmation_pending": self.confirmation_pending,
            "submission_state": self.submission_state.value,
            "auto_submitted": self.auto_submitted,
            "attempt_id": self.attempt.id if self.attempt else None,
            "error": self.last_error,
        }
