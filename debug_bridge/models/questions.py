"""
Q&A Session Models
==================

Questions pushed to the browser user, the answers that come back, and the
in-memory session record the coordinator keeps for each exchange.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from debug_bridge.models.base import CamelModel


class QuestionType(str, Enum):
    TEXT = "text"
    MULTIPLE_CHOICE = "multipleChoice"
    BOOLEAN = "boolean"


class SessionStatus(str, Enum):
    """pending → answered | timeout. Both targets are terminal."""
    PENDING = "pending"
    ANSWERED = "answered"
    TIMEOUT = "timeout"


class Question(CamelModel):
    id: str
    text: str
    type: QuestionType = QuestionType.TEXT
    options: Optional[List[str]] = Field(None, description="Choices for multipleChoice questions")
    required: bool = True


class Answer(CamelModel):
    question_id: str
    answer: str
    timestamp: int


class AnswerInput(CamelModel):
    """Answer as submitted by the browser; the server stamps the time."""
    question_id: str
    answer: str


class QuestionSession(CamelModel):
    id: str
    questions: List[Question]
    answers: List[Answer] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.PENDING
    created_at: int
    answered_at: Optional[int] = None
    timeout_ms: int


class SubmitAnswersRequest(CamelModel):
    """POST /api/questions/answer body."""
    session_id: Optional[str] = None
    answers: Optional[List[AnswerInput]] = None


DEFAULT_QUESTIONS: List[Question] = [
    Question(
        id="q1",
        text="What were you trying to do when this issue occurred?",
        type=QuestionType.TEXT,
        required=True,
    ),
    Question(
        id="q2",
        text="What did you expect to happen?",
        type=QuestionType.TEXT,
        required=True,
    ),
    Question(
        id="q3",
        text="How urgent is this issue?",
        type=QuestionType.MULTIPLE_CHOICE,
        options=[
            "Critical - blocking work",
            "High - needs attention soon",
            "Medium - can wait",
            "Low - nice to fix",
        ],
        required=True,
    ),
    Question(
        id="q4",
        text="Any additional context or steps to reproduce?",
        type=QuestionType.TEXT,
        required=False,
    ),
]
