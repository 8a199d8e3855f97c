from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import List, Literal, Union
from typing_extensions import Annotated


class ContentBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    class_id: str = Field(alias="classId")
    subject_id: str = Field(alias="subjectId")
    title: str
    description: str = ""
    price_inr: float = Field(default=0, alias="priceInr")


class NoteContent(ContentBase):
    kind: Literal["note"] = "note"
    file_url: str = Field(alias="fileUrl")


class TestContent(ContentBase):
    __test__ = False  # not a pytest class

    kind: Literal["test"] = "test"
    test_file_url: str = Field(alias="testFileUrl")
    answer_file_url: str = Field(alias="answerFileUrl")


class QuizQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    question: str
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(alias="correctAnswer", ge=0, le=3)


class QuizDefinition(ContentBase):
    kind: Literal["quiz"] = "quiz"
    questions: List[QuizQuestion]
    time_limit: int = Field(alias="timeLimit", gt=0)  # minutes

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit * 60


Content = Annotated[Union[NoteContent, TestContent, QuizDefinition], Field(discriminator="kind")]

_content_adapter = TypeAdapter(Content)


def parse_content(data: dict) -> Union[NoteContent, TestContent, QuizDefinition]:
    """Parse a stored content record; the record must carry its `kind`"""
    return _content_adapter.validate_python(data)
