"""
session.py — Quiz Session State Machine
=======================================
Drives one candidate through a quiz: skills in order of first appearance,
questions within a skill in generation order, one live timer at a time.

Quiz states
-----------
  NOT_STARTED → IN_PROGRESS → COMPLETED          (COMPLETED is terminal)

Question states
---------------
  UNANSWERED → {ANSWERED | SKIPPED | TIMED_OUT} → SUBMITTED

Transitions
-----------
  answer(qid, choice)   active question only; choice must be one of its
                        options; advance after ``answer_delay``
  skip(qid)             active question only; records SKIPPED; advance now
  poll()                fires the timeout (random option from the question's
                        own options) and any due advance
  next_skill()          leave a completed skill for the next one
  submit()              every skill complete, or at least one recorded answer

The machine never sleeps and never auto-submits.  Time comes from the
injected ``clock`` and timeout answers from the injected ``rng``.

Every answer goes through ``on_record(question, answer_text)`` *before* the
question changes state; if the hook raises, the session is left untouched
and the caller may retry.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from skill_quiz.errors import InvalidTransition, SubmissionNotAllowed
from skill_quiz.models import SKIPPED, QuestionState, QuizQuestion, SessionState

logger = logging.getLogger(__name__)

RecordHook = Callable[[QuizQuestion, str], None]


# ─── Timer ───────────────────────────────────────────────────────────────────

class QuestionTimer:
    """Cancelable countdown bound to one question id."""

    def __init__(self, limit: float, clock: Callable[[], float]) -> None:
        self.limit        = limit
        self._clock       = clock
        self._deadline: Optional[float] = None
        self.question_id: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._deadline is not None

    def start(self, question_id: int) -> None:
        """(Re)start at the full limit for ``question_id``."""
        self.question_id = question_id
        self._deadline   = self._clock() + self.limit

    def cancel(self) -> None:
        self._deadline   = None
        self.question_id = None

    def remaining(self) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - self._clock())

    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline


# ─── Session ─────────────────────────────────────────────────────────────────

@dataclass
class SessionQuestion:
    question:    QuizQuestion
    state:       QuestionState = QuestionState.UNANSWERED
    answer_text: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.answer_text is not None


class QuizSession:
    """
    Synchronous quiz-taking state machine.

    Usage::

        session = QuizSession(questions, on_record=store.insert_answer_for)
        session.start()
        session.answer(session.active_question.question.id, "B. ...")
        session.poll()            # call periodically; fires timeouts/advances
        if session.skill_complete and not session.all_skills_complete:
            session.next_skill()
        answers = session.submit()
    """

    def __init__(
        self,
        questions: Sequence[QuizQuestion],
        *,
        time_limit: float = 15.0,
        answer_delay: float = 0.5,
        timeout_delay: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        on_record: Optional[RecordHook] = None,
        recorded: Optional[Mapping[int, str]] = None,
    ) -> None:
        self._clock         = clock
        self._rng           = rng or random.Random()
        self._on_record     = on_record
        self.answer_delay   = answer_delay
        self.timeout_delay  = timeout_delay
        self.timer          = QuestionTimer(time_limit, clock)
        self.state          = SessionState.NOT_STARTED

        # Partition by skill, preserving first-appearance order.
        self._by_skill: dict[str, list[SessionQuestion]] = {}
        for q in questions:
            self._by_skill.setdefault(q.skill_id, []).append(SessionQuestion(q))
        self.skills: list[str] = list(self._by_skill)

        # Answers already persisted (resuming an in-progress quiz).
        for sq in self._all():
            if recorded and sq.question.id in recorded:
                sq.answer_text = recorded[sq.question.id]
                sq.state       = QuestionState.SUBMITTED

        self._skill_idx    = 0
        self._question_idx = 0
        self._advance_due: Optional[float] = None

    # ── Read-only views ───────────────────────────────────────────────────────

    def _all(self) -> list[SessionQuestion]:
        return [sq for skill in self.skills for sq in self._by_skill[skill]]

    @property
    def questions(self) -> list[SessionQuestion]:
        return self._all()

    @property
    def current_skill(self) -> Optional[str]:
        if not self.skills or self.state != SessionState.IN_PROGRESS:
            return None
        return self.skills[self._skill_idx]

    def skill_questions(self, skill_id: str) -> list[SessionQuestion]:
        return list(self._by_skill.get(skill_id, []))

    def is_skill_complete(self, skill_id: str) -> bool:
        return all(sq.state == QuestionState.SUBMITTED for sq in self._by_skill[skill_id])

    @property
    def skill_complete(self) -> bool:
        """True when the current skill is done and next_skill()/submit() is due."""
        skill = self.current_skill
        return skill is not None and self.is_skill_complete(skill)

    @property
    def all_skills_complete(self) -> bool:
        return all(self.is_skill_complete(s) for s in self.skills)

    @property
    def active_question(self) -> Optional[SessionQuestion]:
        """The question on screen; None once the current skill is complete."""
        skill = self.current_skill
        if skill is None:
            return None
        bucket = self._by_skill[skill]
        if self._question_idx >= len(bucket):
            return None
        sq = bucket[self._question_idx]
        return None if sq.state == QuestionState.SUBMITTED else sq

    @property
    def recorded_count(self) -> int:
        return sum(1 for sq in self._all() if sq.recorded)

    @property
    def can_submit(self) -> bool:
        return self.state == SessionState.IN_PROGRESS and (
            self.all_skills_complete or self.recorded_count > 0
        )

    @property
    def advance_pending(self) -> bool:
        return self._advance_due is not None

    def time_remaining(self) -> float:
        return self.timer.remaining()

    # ── Transitions ───────────────────────────────────────────────────────────

    def start(self) -> None:
        if self.state != SessionState.NOT_STARTED:
            raise InvalidTransition(f"Cannot start a session that is {self.state.value}.")
        if not self.skills:
            raise InvalidTransition("Cannot start a quiz without questions.")
        self.state = SessionState.IN_PROGRESS

        # Resume at the first skill with unsubmitted questions.
        for idx, skill in enumerate(self.skills):
            if not self.is_skill_complete(skill):
                self._skill_idx = idx
                self._enter_question(self._first_open(skill))
                return
        self._skill_idx = len(self.skills) - 1
        self._question_idx = len(self._by_skill[self.skills[-1]])
        logger.debug("Session resumed with every question already answered")

    def answer(self, question_id: int, choice: str) -> None:
        sq = self._require_active(question_id)
        if choice not in sq.question.options:
            raise InvalidTransition(f"{choice!r} is not an option of question {question_id}.")
        self._record(sq, choice, QuestionState.ANSWERED)
        self._advance_due = self._clock() + self.answer_delay

    def skip(self, question_id: int) -> None:
        sq = self._require_active(question_id)
        self._record(sq, SKIPPED, QuestionState.SKIPPED)
        self._advance()

    def poll(self) -> list[str]:
        """Fire due timeouts and advances.  Returns the events that fired."""
        events: list[str] = []
        while self.state == SessionState.IN_PROGRESS:
            if self._advance_due is not None:
                if self._clock() < self._advance_due:
                    break
                self._advance()
                events.append("advance")
                continue
            sq = self.active_question
            if sq is not None and sq.state == QuestionState.UNANSWERED and self.timer.expired():
                choice = self._rng.choice(sq.question.options)
                self._record(sq, choice, QuestionState.TIMED_OUT)
                self._advance_due = self._clock() + self.timeout_delay
                logger.debug("Question %s timed out; recorded %r", sq.question.id, choice)
                events.append("timeout")
                continue
            break
        return events

    def next_skill(self) -> None:
        if self.state != SessionState.IN_PROGRESS:
            raise InvalidTransition("Session is not in progress.")
        if not self.skill_complete:
            raise InvalidTransition("The current skill still has open questions.")
        for idx in range(self._skill_idx + 1, len(self.skills)):
            if not self.is_skill_complete(self.skills[idx]):
                self._skill_idx = idx
                self._enter_question(self._first_open(self.skills[idx]))
                return
        raise InvalidTransition("No remaining skills; submit the quiz instead.")

    def submit(self) -> dict[int, str]:
        """
        Close the session.  Returns question id → recorded answer text for
        every question that has one; unreached questions are absent.
        """
        if self.state == SessionState.COMPLETED:
            raise InvalidTransition("Quiz already submitted.")
        if self.state != SessionState.IN_PROGRESS:
            raise InvalidTransition("Quiz has not been started.")
        if not self.can_submit:
            raise SubmissionNotAllowed(
                "Answer or skip at least one question before submitting early."
            )
        # A pending advance is flushed so the answered question is submitted.
        if self._advance_due is not None:
            self._mark_current_submitted()
            self._advance_due = None
        self.timer.cancel()
        self.state = SessionState.COMPLETED
        return {sq.question.id: sq.answer_text for sq in self._all() if sq.recorded}

    # ── Internals ─────────────────────────────────────────────────────────────

    def _first_open(self, skill: str) -> int:
        for idx, sq in enumerate(self._by_skill[skill]):
            if sq.state != QuestionState.SUBMITTED:
                return idx
        return len(self._by_skill[skill])

    def _enter_question(self, idx: int) -> None:
        self._question_idx = idx
        sq = self.active_question
        if sq is None:
            self.timer.cancel()
        else:
            self.timer.start(sq.question.id)

    def _require_active(self, question_id: int) -> SessionQuestion:
        if self.state != SessionState.IN_PROGRESS:
            raise InvalidTransition("Session is not in progress.")
        sq = self.active_question
        if sq is None or sq.question.id != question_id:
            raise InvalidTransition(f"Question {question_id} is not the active question.")
        if sq.state != QuestionState.UNANSWERED:
            raise InvalidTransition(f"Question {question_id} already has an answer.")
        return sq

    def _record(self, sq: SessionQuestion, text: str, state: QuestionState) -> None:
        if self._on_record is not None:
            self._on_record(sq.question, text)
        sq.answer_text = text
        sq.state       = state
        self.timer.cancel()

    def _mark_current_submitted(self) -> None:
        sq = self.active_question
        if sq is not None and sq.recorded:
            sq.state = QuestionState.SUBMITTED

    def _advance(self) -> None:
        self._advance_due = None
        self._mark_current_submitted()
        bucket = self._by_skill[self.skills[self._skill_idx]]
        nxt = self._question_idx + 1
        while nxt < len(bucket) and bucket[nxt].state == QuestionState.SUBMITTED:
            nxt += 1
        self._enter_question(nxt)
        if nxt >= len(bucket):
            logger.debug("Skill %s complete", self.skills[self._skill_idx])
