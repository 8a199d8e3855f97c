from datetime import datetime
from typing import List, Optional, Sequence

from growth_academy.models import UNANSWERED, QuizAttempt, QuizDefinition, QuizQuestion
from growth_academy.utils.time_utils import format_duration, get_ist_time


def calculate_score(questions: Sequence[QuizQuestion], answers: Sequence[int]) -> int:
    """Count answers equal to the question's correct index; -1 never matches"""
    return sum(
        1 for question, answer in zip(questions, answers)
        if answer != UNANSWERED and answer == question.correct_answer
    )


def clamp_time_taken(time_limit_minutes: int, remaining_seconds: int) -> int:
    limit = time_limit_minutes * 60
    return min(limit, max(0, limit - remaining_seconds))


def build_attempt(
    quiz: QuizDefinition,
    student_name: str,
    answers: Sequence[int],
    remaining_seconds: int,
    timestamp: Optional[datetime] = None,
) -> QuizAttempt:
    answers = list(answers)
    return QuizAttempt(
        quiz_id=quiz.id,
        student_name=student_name,
        score=calculate_score(quiz.questions, answers),
        total_questions=len(quiz.questions),
        answers=answers,
        time_taken=clamp_time_taken(quiz.time_limit, remaining_seconds),
        timestamp=timestamp or get_ist_time(),
    )


def score_band(percentage: int) -> str:
    if percentage >= 80:
        return "high"
    if percentage >= 50:
        return "medium"
    return "low"


def build_result_view(attempt: QuizAttempt, quiz: QuizDefinition) -> dict:
    """Read-only result page data for one attempt"""
    # half-up, so 5/8 shows as 63%
    percentage = int(attempt.score * 100 / attempt.total_questions + 0.5)

    review: List[dict] = []
    for index, question in enumerate(quiz.questions):
        answer = attempt.answers[index] if index < len(attempt.answers) else UNANSWERED
        is_correct = answer != UNANSWERED and answer == question.correct_answer
        review.append({
            "number": index + 1,
            "question": question.question,
            "your_answer": question.options[answer] if answer != UNANSWERED else "Not Answered",
            "is_correct": is_correct,
            "correct_answer": question.options[question.correct_answer],
        })

    return {
        "attempt_id": attempt.id,
        "quiz_id": quiz.id,
        "quiz_title": quiz.title,
        "class_id": quiz.class_id,
        "subject_id": quiz.subject_id,
        "student_name": attempt.student_name,
        "percentage": percentage,
        "band": score_band(percentage),
        "score": attempt.score,
        "total_questions": attempt.total_questions,
        "correct_answers_label": f"{attempt.score}/{attempt.total_questions}",
        "time_taken": attempt.time_taken,
        "time_taken_label": format_duration(attempt.time_taken),
        "timestamp": attempt.timestamp.isoformat(),
        "review": review,
    }
