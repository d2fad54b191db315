"""
engine.py — AssessmentEngine
============================
Orchestrates one quiz from creation to result:

  create_job_quiz / create_practice_quiz
      → skill_matcher → QuestionGenerator.generate_batch → QuizStore
  fetch_questions / refresh_questions      bounded polling (polling.py)
  start_session                            → QuizSession (answers persisted
                                             through its on_record hook)
  submit                                   → scoring.score → CAS completion
                                             → best-effort application sync
  get_result / list_quizzes                → visibility-gated reads

Every operation takes the acting Principal explicitly; nothing is read from
ambient state.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from skill_quiz import scoring, skill_matcher
from skill_quiz.config import Settings, get_settings
from skill_quiz.database import QuizStore
from skill_quiz.errors import (
    AccessDenied,
    DuplicateSubmission,
    InvalidTransition,
    MissingPrerequisite,
    NotReadyYet,
    QuizNotFound,
    SubmissionNotAllowed,
)
from skill_quiz.generation_trace import GenerationTrace, new_trace
from skill_quiz.guardrails import GuardrailsPipeline
from skill_quiz.models import (
    ApplicationStatus,
    Principal,
    Quiz,
    QuizQuestion,
    QuizResultView,
    QuizScore,
    QuizStatus,
    SessionState,
    SkillAssociation,
    ViewerRole,
)
from skill_quiz.polling import PollResult, QuestionSetPoller
from skill_quiz.question_generator import QuestionGenerator, SkillQuestionSet
from skill_quiz.session import QuizSession

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    quiz_id:            int
    score:              QuizScore
    completed_at:       Optional[datetime]
    already_completed:  bool = False          # True → this call was a no-op
    application_synced: Optional[bool] = None  # None for practice quizzes


class AssessmentEngine:
    """
    Usage::

        engine  = AssessmentEngine(QuizStore("quiz.db"))
        quiz_id = engine.create_job_quiz(candidate, application_id)
        session = engine.start_session(candidate, quiz_id)
        ...                                     # answer / skip / poll
        result  = engine.submit(candidate, quiz_id, session)
    """

    def __init__(
        self,
        store: QuizStore,
        generator: Optional[QuestionGenerator] = None,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store     = store
        self.settings  = settings or get_settings()
        self.generator = generator or QuestionGenerator(self.settings)
        self._clock    = clock
        self._rng      = rng or random.Random()
        self._guard    = GuardrailsPipeline()
        self.poller    = QuestionSetPoller(
            store.get_questions,
            max_retries=self.settings.quiz.poll_max_retries,
            interval=self.settings.quiz.poll_interval_seconds,
            sleep=sleep,
        )

    # ── Access helpers ────────────────────────────────────────────────────────

    def _load_quiz(self, quiz_id: int) -> Quiz:
        quiz = self.store.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFound(quiz_id)
        return quiz

    def _owned_quiz(self, principal: Principal, quiz_id: int) -> Quiz:
        quiz = self._load_quiz(quiz_id)
        if principal.role != ViewerRole.EMPLOYEE or quiz.owner_employee_id != principal.user_id:
            raise AccessDenied(f"Quiz {quiz_id} belongs to another candidate.")
        return quiz

    # ── Creation & generation ─────────────────────────────────────────────────

    def create_job_quiz(self, principal: Principal, application_id: int) -> int:
        """Create (or return the existing) quiz for a job application."""
        app = self.store.get_application(application_id)
        if app is None:
            raise MissingPrerequisite(f"Application {application_id} does not exist.")
        if principal.role != ViewerRole.EMPLOYEE or app.employee_id != principal.user_id:
            raise AccessDenied("Only the applicant can take the quiz for this application.")

        existing = self.store.get_quiz_for_application(application_id)
        if existing is not None:
            logger.info("Application %d already has quiz %d", application_id, existing.id)
            # an earlier attempt died between quiz creation and storing questions
            if existing.status == QuizStatus.PENDING and existing.question_count == 0:
                logger.info("Quiz %d has no questions; generating them again", existing.id)
                self.generate_questions(principal, existing.id)
            return existing.id

        associations = skill_matcher.match(
            self.store.get_job_skills(app.job_id),
            self.store.get_employee_skills(principal.user_id),
        )
        quiz_id = self.store.create_quiz(principal.user_id, application_id)
        self.generate_questions(principal, quiz_id, associations)
        return quiz_id

    def create_practice_quiz(
        self,
        principal: Principal,
        skills: Optional[Sequence[SkillAssociation]] = None,
    ) -> int:
        """Practice quiz over the candidate's skills (or an explicit subset)."""
        if principal.role != ViewerRole.EMPLOYEE:
            raise AccessDenied("Only candidates can take practice quizzes.")
        candidate_skills = list(skills) if skills else self.store.get_employee_skills(principal.user_id)
        associations = skill_matcher.practice_targets(candidate_skills)
        quiz_id = self.store.create_quiz(principal.user_id)
        self.generate_questions(principal, quiz_id, associations)
        return quiz_id

    def _associations_for(self, quiz: Quiz) -> list[SkillAssociation]:
        if quiz.application_id is None:
            return skill_matcher.practice_targets(self.store.get_employee_skills(quiz.owner_employee_id))
        app = self.store.get_application(quiz.application_id)
        if app is None:
            raise MissingPrerequisite(f"Application {quiz.application_id} does not exist.")
        return skill_matcher.match(
            self.store.get_job_skills(app.job_id),
            self.store.get_employee_skills(quiz.owner_employee_id),
        )

    def generate_questions(
        self,
        principal: Principal,
        quiz_id: int,
        associations: Optional[Sequence[SkillAssociation]] = None,
    ) -> list[QuizQuestion]:
        """
        (Re)generate and store the question set of a quiz that has not been
        started.  Without ``associations`` the skills are matched again.
        """
        quiz = self._owned_quiz(principal, quiz_id)
        if quiz.status != QuizStatus.PENDING:
            raise InvalidTransition(f"Quiz {quiz_id} has already been started.")
        if associations is None:
            associations = self._associations_for(quiz)

        targets = skill_matcher.to_targets(associations, self.store.get_skill_names())
        per_skill = self.settings.quiz.questions_per_skill
        trace = new_trace(quiz_id, mode="live" if self.settings.live_mode else "mock")
        started = time.perf_counter()

        regular = [t for t in targets if not t.is_general_fit]
        batch = iter(self.generator.generate_batch(regular, per_skill))
        sets: list[SkillQuestionSet] = []
        for target in targets:
            if target.is_general_fit:
                sets.append(self.generator.generate_with_trace(target, 1))
            else:
                sets.append(next(batch))

        pairs = []
        checks = []
        for qset in sets:
            expected = 1 if qset.target.is_general_fit else per_skill
            checks.append(self._guard.check_set(qset.questions, expected))
            trace.append(qset.step)
            pairs.extend((qset.target.skill_id, q) for q in qset.questions)
        merged = self._guard.merge(*checks)
        if merged.blocked:
            logger.warning("Question set of quiz %d failed checks:\n%s", quiz_id, merged.summary())

        trace.total_ms = round((time.perf_counter() - started) * 1000, 1)
        stored = self.store.replace_questions(quiz_id, pairs)
        self.store.save_generation_trace(quiz_id, trace.to_json())
        logger.info("Quiz %d: %d questions over %d skill(s), fallback used for %s",
                    quiz_id, len(stored), len(targets), trace.fallback_skills or "none")
        return stored

    def generation_trace(self, principal: Principal, quiz_id: int) -> Optional[GenerationTrace]:
        self._owned_quiz(principal, quiz_id)
        raw = self.store.load_generation_trace(quiz_id)
        return GenerationTrace.from_json(raw) if raw else None

    # ── Question set retrieval ────────────────────────────────────────────────

    def fetch_questions(self, principal: Principal, quiz_id: int) -> PollResult:
        """Bounded polling; NOT_READY means the user must refresh manually."""
        self._owned_quiz(principal, quiz_id)
        return self.poller.poll(quiz_id)

    def refresh_questions(self, principal: Principal, quiz_id: int) -> PollResult:
        self._owned_quiz(principal, quiz_id)
        return self.poller.refresh(quiz_id)

    # ── Taking the quiz ───────────────────────────────────────────────────────

    def start_session(self, principal: Principal, quiz_id: int) -> QuizSession:
        """Open (or resume) the quiz; answers are written as they are recorded."""
        quiz = self._owned_quiz(principal, quiz_id)
        if quiz.status == QuizStatus.COMPLETED:
            raise InvalidTransition(f"Quiz {quiz_id} is already completed.")
        questions = self.store.get_questions(quiz_id)
        if not questions:
            raise NotReadyYet(quiz_id)

        recorded = {a.question_id: a.answer_text for a in self.store.get_answers(quiz_id)}
        if self.store.mark_in_progress(quiz_id):
            logger.info("Quiz %d started", quiz_id)

        cfg = self.settings.quiz
        session = QuizSession(
            questions,
            time_limit=cfg.time_limit_seconds,
            answer_delay=cfg.answer_advance_delay,
            timeout_delay=cfg.timeout_advance_delay,
            clock=self._clock,
            rng=self._rng,
            on_record=lambda q, text: self.store.insert_answer(q.id, text),
            recorded=recorded,
        )
        session.start()
        return session

    def submit(
        self,
        principal: Principal,
        quiz_id: int,
        session: Optional[QuizSession] = None,
    ) -> SubmissionResult:
        """
        Score and complete the quiz.  A repeated submit is a no-op that
        returns the stored result.
        """
        quiz = self._owned_quiz(principal, quiz_id)
        if quiz.status == QuizStatus.COMPLETED:
            logger.info("Quiz %d already completed; returning stored result", quiz_id)
            return self._stored_result(quiz)

        if session is not None and session.state != SessionState.COMPLETED:
            session.submit()
        answers = self.store.get_answers(quiz_id)
        if not answers:
            raise SubmissionNotAllowed("Answer or skip at least one question before submitting.")

        questions = self.store.get_questions(quiz_id)
        result = scoring.score(questions, answers)
        result.per_skill = scoring.validate_skill_scores(
            result.per_skill, dict.fromkeys(q.skill_id for q in questions),
        )

        try:
            self._complete(quiz_id, result)
        except DuplicateSubmission:
            logger.info("Quiz %d was completed concurrently; returning stored result", quiz_id)
            return self._stored_result(self._load_quiz(quiz_id))

        synced = None
        if quiz.application_id is not None:
            synced = self._sync_application(quiz.application_id)

        stored = self._load_quiz(quiz_id)
        logger.info("Quiz %d completed: overall %d%% %s", quiz_id, result.overall, result.per_skill)
        return SubmissionResult(
            quiz_id=quiz_id, score=result, completed_at=stored.completed_at,
            application_synced=synced,
        )

    def _complete(self, quiz_id: int, result: QuizScore) -> None:
        if not self.store.complete_quiz(quiz_id, result):
            raise DuplicateSubmission(quiz_id)

    def _sync_application(self, application_id: int) -> bool:
        try:
            self.store.update_application_status(application_id, ApplicationStatus.QUIZ_COMPLETED)
        except sqlite3.Error as exc:
            logger.warning("Could not mark application %d as quiz_completed: %s", application_id, exc)
            return False
        return True

    @staticmethod
    def _stored_result(quiz: Quiz) -> SubmissionResult:
        return SubmissionResult(
            quiz_id=quiz.id,
            score=QuizScore(overall=quiz.score or 0, per_skill=dict(quiz.skill_scores)),
            completed_at=quiz.completed_at,
            already_completed=True,
        )

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _visible(self, principal: Principal, quiz: Quiz) -> bool:
        if quiz.application_id is None:
            # practice quizzes are private to their owner
            return principal.role == ViewerRole.EMPLOYEE and principal.user_id == quiz.owner_employee_id
        if principal.role == ViewerRole.EMPLOYEE and principal.user_id != quiz.owner_employee_id:
            return False
        app = self.store.get_application(quiz.application_id)
        return scoring.can_view(principal.role, app.status if app else None)

    def get_result(self, principal: Principal, quiz_id: int) -> QuizResultView:
        quiz = self._load_quiz(quiz_id)
        if quiz.status != QuizStatus.COMPLETED:
            raise InvalidTransition(f"Quiz {quiz_id} has not been completed.")
        if not self._visible(principal, quiz):
            raise AccessDenied("Results are not available to you yet.")
        return scoring.build_result_view(
            quiz, self.store.get_questions(quiz_id), self.store.get_answers(quiz_id),
        )

    def list_quizzes(self, principal: Principal, employee_id: Optional[str] = None) -> list[Quiz]:
        """
        Quizzes of an employee.  Candidates may only list their own; scores
        the viewer may not see are blanked.
        """
        employee_id = employee_id or principal.user_id
        if principal.role == ViewerRole.EMPLOYEE and employee_id != principal.user_id:
            raise AccessDenied("Candidates can only list their own quizzes.")

        quizzes = self.store.list_quizzes(employee_id)
        if principal.role == ViewerRole.EMPLOYER:
            quizzes = [q for q in quizzes if q.application_id is not None]
        return [
            q if self._visible(principal, q)
            else dataclasses.replace(q, score=None, skill_scores={})
            for q in quizzes
        ]
