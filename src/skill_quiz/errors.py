"""
errors.py — Exception hierarchy for the Skill Quiz engine
=========================================================
Every error the engine raises on purpose derives from QuizEngineError, so
callers can catch the family with one clause.  Storage failures are *not*
wrapped: sqlite3.Error propagates unchanged as a visible, retryable failure.

  GenerationUnavailable   LLM tier missing / timed out / malformed payload.
                          Raised inside question_generator and always caught
                          there; never reaches engine callers.
  NotReadyYet             Question set not persisted yet (drives polling).
  DuplicateSubmission     Completion attempted on an already-completed quiz.
  MissingPrerequisite     No skills to build a practice quiz from.
  InvalidTransition       Illegal call for the current session state.
  SubmissionNotAllowed    Submit before any answer/skip was recorded.
  QuizNotFound            Unknown quiz id.
  AccessDenied            Principal may not act on / view this quiz.
"""

from __future__ import annotations


class QuizEngineError(Exception):
    """Root of all engine errors."""


class GenerationUnavailable(QuizEngineError):
    pass


class NotReadyYet(QuizEngineError):
    def __init__(self, quiz_id: int, attempts: int = 0) -> None:
        self.quiz_id  = quiz_id
        self.attempts = attempts
        super().__init__(
            f"Questions for quiz {quiz_id} are not ready yet "
            f"(after {attempts} attempt(s)). Please refresh manually."
        )


class DuplicateSubmission(QuizEngineError):
    def __init__(self, quiz_id: int) -> None:
        self.quiz_id = quiz_id
        super().__init__(f"Quiz {quiz_id} has already been completed.")


class MissingPrerequisite(QuizEngineError):
    """User-facing: the profile or job lacks what a quiz needs."""


class InvalidTransition(QuizEngineError):
    pass


class SubmissionNotAllowed(QuizEngineError):
    pass


class QuizNotFound(QuizEngineError):
    def __init__(self, quiz_id: int) -> None:
        self.quiz_id = quiz_id
        super().__init__(f"Quiz {quiz_id} does not exist.")


class AccessDenied(QuizEngineError):
    pass
