"""
Tests for scoring, score visibility and the result view (scoring.py).
"""
from datetime import datetime

import pytest

from factories import make_answer, make_question

from skill_quiz import scoring
from skill_quiz.models import ApplicationStatus, Quiz, QuizStatus, ViewerRole


def _mixed_quiz():
    """Skill A: 3 of 5 correct; skill B: 2 of 2 correct."""
    qs = [make_question(i, "A") for i in range(1, 6)] + [make_question(i, "B") for i in (6, 7)]
    answers = [make_answer(q, correct=q.id in (1, 2, 3, 6, 7)) for q in qs]
    return qs, answers


class TestPercentage:
    @pytest.mark.parametrize("correct,total,expected", [
        (0, 5, 0), (5, 5, 100), (3, 5, 60), (5, 7, 71),
        (1, 8, 13), (5, 8, 63), (1, 3, 33), (2, 3, 67), (1, 2, 50),
    ])
    def test_half_up(self, correct, total, expected):
        assert scoring.percentage(correct, total) == expected

    def test_zero_total_is_zero(self):
        assert scoring.percentage(0, 0) == 0


class TestScore:
    def test_per_skill_and_overall(self):
        qs, answers = _mixed_quiz()
        result = scoring.score(qs, answers)
        assert result.per_skill == {"A": 60, "B": 100}
        assert result.overall == 71

    def test_skipped_counts_in_denominator(self):
        qs = [make_question(1), make_question(2)]
        answers = [make_answer(qs[0], correct=True), make_answer(qs[1], correct=False, skipped=True)]
        assert scoring.score(qs, answers).overall == 50

    def test_unanswered_questions_excluded(self):
        qs = [make_question(i) for i in range(1, 5)]
        answers = [make_answer(qs[0], correct=True)]
        result = scoring.score(qs, answers)
        assert result.overall == 100
        assert result.per_skill == {"python": 100}

    def test_skill_without_answers_scores_zero(self):
        qs = [make_question(1, "A"), make_question(2, "B")]
        result = scoring.score(qs, [make_answer(qs[0], correct=True)])
        assert result.per_skill == {"A": 100, "B": 0}
        assert result.overall == 100

    def test_per_skill_keys_follow_question_order(self):
        qs = [make_question(1, "sql"), make_question(2, "python")]
        result = scoring.score(qs, [make_answer(q, correct=True) for q in qs])
        assert list(result.per_skill) == ["sql", "python"]

    def test_unknown_question_rejected(self):
        qs = [make_question(1)]
        with pytest.raises(ValueError):
            scoring.score(qs, [make_answer(make_question(99), correct=True)])

    def test_scores_within_bounds(self):
        qs, answers = _mixed_quiz()
        result = scoring.score(qs, answers)
        assert 0 <= result.overall <= 100
        assert all(0 <= v <= 100 for v in result.per_skill.values())


class TestValidateSkillScores:
    def test_accepts_matching_keys(self):
        assert scoring.validate_skill_scores({"b": 10, "a": 20}, ["a", "b"]) == {"a": 20, "b": 10}

    def test_rejects_missing_skill(self):
        with pytest.raises(ValueError):
            scoring.validate_skill_scores({"a": 20}, ["a", "b"])

    def test_rejects_extra_skill(self):
        with pytest.raises(ValueError):
            scoring.validate_skill_scores({"a": 20, "z": 1}, ["a"])

    @pytest.mark.parametrize("value", [-1, 101])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValueError):
            scoring.validate_skill_scores({"a": value}, ["a"])


class TestVisibility:
    @pytest.mark.parametrize("status", list(ApplicationStatus))
    def test_employer_always_sees(self, status):
        assert scoring.can_view(ViewerRole.EMPLOYER, status)

    @pytest.mark.parametrize("status,visible", [
        (ApplicationStatus.PENDING,        False),
        (ApplicationStatus.QUIZ_COMPLETED, False),
        (ApplicationStatus.RESUME_REQUESTED, False),
        (ApplicationStatus.INTERVIEW,      True),
        (ApplicationStatus.ACCEPTED,       True),
        (ApplicationStatus.REJECTED,       True),
    ])
    def test_employee_visibility(self, status, visible):
        assert scoring.can_view(ViewerRole.EMPLOYEE, status) is visible

    def test_plain_strings_accepted(self):
        assert scoring.can_view("employee", "interview")
        assert not scoring.can_view("employee", "pending")

    def test_employee_without_application_cannot_see(self):
        assert not scoring.can_view(ViewerRole.EMPLOYEE, None)


class TestBands:
    @pytest.mark.parametrize("value,band", [
        (100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"),
        (59, "Average"), (40, "Average"), (39, "Needs Improvement"), (0, "Needs Improvement"),
        (None, "Not scored"),
    ])
    def test_band(self, value, band):
        assert scoring.score_band(value) == band


class TestResultView:
    def test_rows_carry_outcomes(self):
        qs = [make_question(i) for i in range(1, 5)]
        answers = [
            make_answer(qs[0], correct=True),
            make_answer(qs[1], correct=False),
            make_answer(qs[2], correct=False, skipped=True),
        ]
        quiz = Quiz(id=1, owner_employee_id="emp-1", status=QuizStatus.COMPLETED,
                    created_at=datetime(2024, 1, 1), completed_at=datetime(2024, 1, 1, 0, 5),
                    score=33, skill_scores={"python": 33})
        view = scoring.build_result_view(quiz, qs, answers)
        assert [r.outcome for r in view.rows] == ["correct", "incorrect", "skipped", "unanswered"]
        assert view.rows[3].answer_text is None
        assert view.rows[1].correct_answer == qs[1].correct_answer
        assert view.band == "Needs Improvement"
        assert view.skill_scores == {"python": 33}
