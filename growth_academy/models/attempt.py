from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from datetime import datetime

UNANSWERED = -1


class QuizAttempt(BaseModel):
    """One completed quiz, immutable once created"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    quiz_id: str = Field(alias="quizId")
    student_name: str = Field(alias="studentName")
    score: int = Field(ge=0)
    total_questions: int = Field(alias="totalQuestions", gt=0)
    answers: List[int]
    time_taken: int = Field(alias="timeTaken", ge=0)  # seconds
    timestamp: datetime

    @model_validator(mode="after")
    def check_answers(self):
        if len(self.answers) != self.total_questions:
            raise ValueError("answers must have one entry per question")
        if any(a != UNANSWERED and not 0 <= a <= 3 for a in self.answers):
            raise ValueError("answers must be option indices 0-3 or -1")
        if self.score > self.total_questions:
            raise ValueError("score cannot exceed the number of questions")
        return self

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class ActivityEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    title: str
    subject: str
    class_id: str = Field(alias="class")
    timestamp: datetime
    file_url: Optional[str] = Field(default=None, alias="fileUrl")

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StudentUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: str
    class_id: str = Field(alias="classId")
