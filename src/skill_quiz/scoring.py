"""
scoring.py — Per-skill / overall scores and score visibility
============================================================
  per-skill %  = round_half_up(100 × correct / total)   (0 when total == 0)
  overall %    = round_half_up(100 × Σcorrect / Σtotal)

``total`` counts answer rows, SKIPPED included; a question with no answer
row at all (never reached before an early submit) is left out.

Visibility: employers always see scores; a candidate sees their own score
only once the application is in interview / accepted / rejected.

Score bands (employer view)
---------------------------
  ≥ 80  Excellent
  ≥ 60  Good
  ≥ 40  Average
  else  Needs Improvement
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

from skill_quiz.models import (
    SCORE_VISIBLE_STATUSES,
    ApplicationStatus,
    QuestionResultRow,
    Quiz,
    QuizAnswer,
    QuizQuestion,
    QuizResultView,
    QuizScore,
    ViewerRole,
)


def percentage(correct: int, total: int) -> int:
    """100 × correct / total, rounded half-up, in exact integer arithmetic."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def score(questions: Sequence[QuizQuestion], answers: Iterable[QuizAnswer]) -> QuizScore:
    """Grade a quiz from its question set and stored answer rows."""
    skill_of = {q.id: q.skill_id for q in questions}
    order: list[str] = []
    for q in questions:
        if q.skill_id not in order:
            order.append(q.skill_id)

    correct = dict.fromkeys(order, 0)
    total   = dict.fromkeys(order, 0)
    for a in answers:
        if a.question_id not in skill_of:
            raise ValueError(f"Answer {a.id} references unknown question {a.question_id}")
        skill = skill_of[a.question_id]
        total[skill]   += 1
        correct[skill] += int(a.is_correct)

    per_skill = {s: percentage(correct[s], total[s]) for s in order}
    overall   = percentage(sum(correct.values()), sum(total.values()))
    return QuizScore(overall=overall, per_skill=per_skill)


def validate_skill_scores(skill_scores: dict[str, int], known_skills: Iterable[str]) -> dict[str, int]:
    """Reject maps whose keys differ from the quiz's skills or values outside 0–100."""
    known = list(known_skills)
    if set(skill_scores) != set(known):
        raise ValueError(
            f"Skill scores keys {sorted(skill_scores)} do not match quiz skills {sorted(known)}"
        )
    for skill, value in skill_scores.items():
        if not 0 <= value <= 100:
            raise ValueError(f"Score for {skill} out of range: {value}")
    return {s: skill_scores[s] for s in known}


def can_view(
    viewer_role: Union[ViewerRole, str],
    application_status: Optional[Union[ApplicationStatus, str]],
) -> bool:
    """Employers always; employees only in interview / accepted / rejected."""
    if ViewerRole(viewer_role) == ViewerRole.EMPLOYER:
        return True
    if application_status is None:
        return False
    return ApplicationStatus(application_status) in SCORE_VISIBLE_STATUSES


def score_band(value: Optional[int]) -> str:
    if value is None:
        return "Not scored"
    if value >= 80:
        return "Excellent"
    if value >= 60:
        return "Good"
    if value >= 40:
        return "Average"
    return "Needs Improvement"


def build_result_view(
    quiz: Quiz,
    questions: Sequence[QuizQuestion],
    answers: Iterable[QuizAnswer],
) -> QuizResultView:
    by_question = {a.question_id: a for a in answers}
    rows: list[QuestionResultRow] = []
    for q in questions:
        a = by_question.get(q.id)
        if a is None:
            outcome = "unanswered"
        elif a.skipped:
            outcome = "skipped"
        else:
            outcome = "correct" if a.is_correct else "incorrect"
        rows.append(QuestionResultRow(
            question_id    = q.id,
            skill_id       = q.skill_id,
            question_text  = q.question_text,
            answer_text    = a.answer_text if a else None,
            correct_answer = q.correct_answer,
            outcome        = outcome,
        ))
    return QuizResultView(
        quiz_id      = quiz.id,
        score        = quiz.score if quiz.score is not None else 0,
        skill_scores = dict(quiz.skill_scores),
        band         = score_band(quiz.score),
        completed_at = quiz.completed_at,
        rows         = rows,
    )
