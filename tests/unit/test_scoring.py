"""
Unit tests for scoring and the result view
"""
from datetime import datetime

import pytest
import pytz

from growth_academy.models import UNANSWERED, QuizAttempt, QuizDefinition
from growth_academy.services.scoring import (
    build_attempt, build_result_view, calculate_score, clamp_time_taken, score_band,
)
from growth_academy.utils.time_utils import format_countdown, format_duration


@pytest.fixture
def quiz(quiz_data):
    return QuizDefinition.model_validate(quiz_data)


class TestScoreCalculation:
    """Test score calculation logic"""

    def test_all_correct(self, quiz):
        assert calculate_score(quiz.questions, [1, 3]) == 2

    def test_partial(self, quiz):
        assert calculate_score(quiz.questions, [1, 0]) == 1

    def test_unanswered_never_scores(self, quiz):
        assert calculate_score(quiz.questions, [UNANSWERED, UNANSWERED]) == 0

    @pytest.mark.parametrize("limit,remaining,expected", [
        (1, 60, 0),
        (1, 40, 20),
        (1, 0, 60),
        (1, -5, 60),
        (1, 75, 0),
        (30, 1500, 300),
    ])
    def test_time_taken_is_clamped(self, limit, remaining, expected):
        assert clamp_time_taken(limit, remaining) == expected

    def test_build_attempt(self, quiz):
        stamp = datetime(2026, 3, 1, 10, 0, tzinfo=pytz.UTC)
        attempt = build_attempt(quiz, "Riya", [1, UNANSWERED], 15, timestamp=stamp)

        assert attempt.quiz_id == quiz.id
        assert attempt.score == 1
        assert attempt.total_questions == 2
        assert attempt.time_taken == 45
        assert attempt.timestamp == stamp
        assert attempt.to_store()["quizId"] == quiz.id
        assert "id" not in attempt.to_store()

    def test_attempt_rejects_wrong_answer_count(self):
        with pytest.raises(ValueError):
            QuizAttempt(
                quiz_id="q", student_name="Riya", score=0, total_questions=2,
                answers=[1], time_taken=0, timestamp=datetime.now(pytz.UTC),
            )


class TestResultView:

    def _attempt(self, score, answers, total=2, time_taken=65):
        return QuizAttempt(
            id="att-1", quiz_id="quiz-physics-1", student_name="Riya", score=score,
            total_questions=total, answers=answers, time_taken=time_taken,
            timestamp=datetime(2026, 3, 1, 10, 0, tzinfo=pytz.UTC),
        )

    def test_review_marks_unanswered(self, quiz):
        view = build_result_view(self._attempt(1, [1, UNANSWERED]), quiz)

        assert view["percentage"] == 50
        assert view["band"] == "medium"
        assert view["correct_answers_label"] == "1/2"
        assert view["time_taken_label"] == "1m 5s"
        assert view["review"][0]["your_answer"] == "m/s"
        assert view["review"][0]["is_correct"] is True
        assert view["review"][1]["your_answer"] == "Not Answered"
        assert view["review"][1]["is_correct"] is False
        assert view["review"][1]["correct_answer"] == "Velocity"

    @pytest.mark.parametrize("percentage,band", [(100, "high"), (80, "high"), (79, "medium"), (50, "medium"), (49, "low"), (0, "low")])
    def test_score_band(self, percentage, band):
        assert score_band(percentage) == band

    def test_percentage_rounds_half_up(self, quiz_data):
        questions = [dict(quiz_data["questions"][0], id=f"q{i}") for i in range(8)]
        quiz = QuizDefinition.model_validate(dict(quiz_data, questions=questions))
        attempt = self._attempt(5, [1] * 5 + [0] * 3, total=8)

        assert build_result_view(attempt, quiz)["percentage"] == 63


class TestTimeFormatting:

    @pytest.mark.parametrize("seconds,label", [(1800, "30:00"), (65, "01:05"), (0, "00:00"), (-3, "00:00")])
    def test_countdown(self, seconds, label):
        assert format_countdown(seconds) == label

    def test_duration(self):
        assert format_duration(0) == "0m 0s"
        assert format_duration(125) == "2m 5s"
