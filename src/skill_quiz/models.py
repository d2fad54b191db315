"""
Data models for the Skill Quiz assessment engine.

Reference data (skills, skill associations) are Pydantic models so that
levels outside 1–5 are rejected where the lists enter the engine.  Records
that the engine creates and stores (quizzes, questions, answers) are plain
dataclasses, as are the session/score value objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


# ─── Sentinels & fixed content ───────────────────────────────────────────────

SKIPPED = "SKIPPED"                 # stored answer_text for a skipped question
OPTION_COUNT = 4

GENERAL_FIT_SKILL_ID   = "general_fit"
GENERAL_FIT_SKILL_NAME = "General Fit"
GENERAL_FIT_QUESTION   = "Why do you think you're a good fit for this role?"
GENERAL_FIT_OPTIONS    = [
    "I have relevant experience",
    "I'm a fast learner",
    "I'm passionate about this field",
    "I have transferable skills",
]
GENERAL_FIT_ANSWER     = "I have relevant experience"


# ─── Enumerations ────────────────────────────────────────────────────────────

class QuizStatus(str, Enum):
    """Persisted lifecycle of a quiz row."""
    PENDING     = "pending"       # created, questions may still be generating
    IN_PROGRESS = "in_progress"   # candidate has started answering
    COMPLETED   = "completed"     # terminal; score columns written once


class ApplicationStatus(str, Enum):
    """Application workflow states.  Only QUIZ_COMPLETED is written here."""
    PENDING          = "pending"
    QUIZ_COMPLETED   = "quiz_completed"
    RESUME_REQUESTED = "resume_requested"
    INTERVIEW        = "interview"
    ACCEPTED         = "accepted"
    REJECTED         = "rejected"


class ViewerRole(str, Enum):
    EMPLOYER = "employer"
    EMPLOYEE = "employee"


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED   = "completed"


class QuestionState(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED   = "answered"
    SKIPPED    = "skipped"
    TIMED_OUT  = "timed_out"
    SUBMITTED  = "submitted"


# Application states in which a candidate may see their own score.
SCORE_VISIBLE_STATUSES = frozenset({
    ApplicationStatus.INTERVIEW,
    ApplicationStatus.ACCEPTED,
    ApplicationStatus.REJECTED,
})


# ─── Reference data (validated at the boundary) ──────────────────────────────

class Skill(BaseModel):
    id:          str
    name:        str
    description: Optional[str] = None


class SkillAssociation(BaseModel):
    """
    A skill attached to a job (level = importance) or a candidate
    (level = proficiency).
    """
    skill_id:   str
    subject_id: str = ""
    level:      int = Field(ge=1, le=5, description="1=beginner … 5=expert")


class SkillTarget(BaseModel):
    """Input of the question generator: which skill, at what difficulty."""
    skill_id: str
    name:     str
    level:    int = Field(ge=1, le=5)

    @property
    def is_general_fit(self) -> bool:
        return self.skill_id == GENERAL_FIT_SKILL_ID


class GeneratedQuestion(BaseModel):
    """One validated multiple-choice question produced by the generator."""
    question:       str
    options:        list[str]
    correct_answer: str
    explanation:    str = ""
    source:         str = "llm"     # "llm" | "fallback" | "fixed"

    @model_validator(mode="after")
    def _check_shape(self) -> "GeneratedQuestion":
        _check_question_shape(self.question, self.options, self.correct_answer)
        return self


def _check_question_shape(text: str, options: list[str], correct: str) -> None:
    if not text or not text.strip():
        raise ValueError("question text must be non-empty")
    if len(options) != OPTION_COUNT:
        raise ValueError(f"expected {OPTION_COUNT} options, got {len(options)}")
    if any(not isinstance(o, str) or not o.strip() for o in options):
        raise ValueError("options must be non-empty strings")
    if len(set(options)) != OPTION_COUNT:
        raise ValueError("options must be distinct")
    if correct not in options:
        raise ValueError("correct_answer must equal one of the options")


# ─── Stored records ──────────────────────────────────────────────────────────

@dataclass
class Application:
    id:                int
    job_id:            int
    employee_id:       str
    status:            ApplicationStatus
    interview_details: Optional[str] = None


@dataclass
class Quiz:
    id:                int
    owner_employee_id: str
    status:            QuizStatus
    created_at:        datetime
    application_id:    Optional[int] = None     # None → practice quiz
    completed_at:      Optional[datetime] = None
    score:             Optional[int] = None
    skill_scores:      dict[str, int] = field(default_factory=dict)
    question_count:    int = 0

    @property
    def is_practice(self) -> bool:
        return self.application_id is None


@dataclass
class QuizQuestion:
    """A persisted question.  Shape is checked on construction."""
    id:             int
    quiz_id:        int
    skill_id:       str
    question_text:  str
    options:        list[str]
    correct_answer: str
    position:       int = 0

    def __post_init__(self) -> None:
        _check_question_shape(self.question_text, self.options, self.correct_answer)


@dataclass
class QuizAnswer:
    id:          int
    question_id: int
    answer_text: str
    is_correct:  bool

    @property
    def skipped(self) -> bool:
        return self.answer_text == SKIPPED


# ─── Engine value objects ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Principal:
    """The acting user, passed explicitly into every engine call."""
    user_id: str
    role:    ViewerRole


@dataclass
class QuizScore:
    overall:   int
    per_skill: dict[str, int] = field(default_factory=dict)   # ordered by skill visit order


@dataclass
class QuestionResultRow:
    question_id:    int
    skill_id:       str
    question_text:  str
    answer_text:    Optional[str]     # None → question never reached
    correct_answer: str
    outcome:        str               # "correct" | "incorrect" | "skipped" | "unanswered"


@dataclass
class QuizResultView:
    """What a viewer sees for a completed quiz (only built when visible)."""
    quiz_id:      int
    score:        int
    skill_scores: dict[str, int]
    band:         str
    completed_at: Optional[datetime]
    rows:         list[QuestionResultRow] = field(default_factory=list)
