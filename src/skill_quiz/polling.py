"""
polling.py — Bounded-retry poller for a quiz's question set
===========================================================
Generation may finish after the candidate opens the quiz.  The poller
repeats an idempotent "fetch current question set" query: one initial fetch,
then up to ``max_retries`` retries spaced ``interval`` seconds apart.  When
the budget is spent it returns a terminal NOT_READY outcome; only an
explicit ``refresh()`` (the manual refresh button) fetches again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from skill_quiz.errors import NotReadyYet
from skill_quiz.models import QuizQuestion

logger = logging.getLogger(__name__)

FetchQuestions = Callable[[int], list[QuizQuestion]]


class PollOutcome(str, Enum):
    READY     = "ready"
    NOT_READY = "not_ready"


@dataclass
class PollResult:
    outcome:   PollOutcome
    attempts:  int
    questions: list[QuizQuestion] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.outcome == PollOutcome.READY

    def questions_or_raise(self, quiz_id: int) -> list[QuizQuestion]:
        if not self.ready:
            raise NotReadyYet(quiz_id, self.attempts)
        return self.questions


class QuestionSetPoller:
    """
    Usage::

        poller = QuestionSetPoller(store.get_questions, max_retries=5, interval=5)
        result = poller.poll(quiz_id)
        if not result.ready:
            ...                       # show "refresh manually"
            result = poller.refresh(quiz_id)
    """

    def __init__(
        self,
        fetch: FetchQuestions,
        max_retries: int = 5,
        interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch       = fetch
        self.max_retries  = max_retries
        self.interval     = interval
        self._sleep       = sleep

    def poll(self, quiz_id: int) -> PollResult:
        attempts = 0
        for attempt in range(self.max_retries + 1):
            if attempt:
                self._sleep(self.interval)
            attempts += 1
            questions = self._fetch(quiz_id)
            if questions:
                return PollResult(PollOutcome.READY, attempts, questions)
            logger.debug("Quiz %d has no questions yet (attempt %d/%d)",
                         quiz_id, attempts, self.max_retries + 1)
        logger.info("Quiz %d still not ready after %d attempts", quiz_id, attempts)
        return PollResult(PollOutcome.NOT_READY, attempts)

    def refresh(self, quiz_id: int) -> PollResult:
        """Manual refresh: a single immediate fetch."""
        questions = self._fetch(quiz_id)
        outcome = PollOutcome.READY if questions else PollOutcome.NOT_READY
        return PollResult(outcome, 1, questions)
