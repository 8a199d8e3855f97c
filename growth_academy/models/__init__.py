from .session import Identity, SessionRecord
from .content import Content, NoteContent, TestContent, QuizQuestion, QuizDefinition, parse_content
from .attempt import UNANSWERED, QuizAttempt, ActivityEntry, StudentUser

__all__ = [
    "Identity", "SessionRecord",
    "Content", "NoteContent", "TestContent", "QuizQuestion", "QuizDefinition", "parse_content",
    "UNANSWERED", "QuizAttempt", "ActivityEntry", "StudentUser",
]
