"""
Tests for the data models: level bounds, question shape checks, enums.
"""
import pytest
from pydantic import ValidationError

from factories import make_question

from skill_quiz.models import (
    GENERAL_FIT_ANSWER,
    GENERAL_FIT_OPTIONS,
    SCORE_VISIBLE_STATUSES,
    ApplicationStatus,
    GeneratedQuestion,
    QuizAnswer,
    QuizQuestion,
    SkillAssociation,
    SkillTarget,
)


class TestSkillAssociation:
    @pytest.mark.parametrize("level", [1, 2, 3, 4, 5])
    def test_valid_levels(self, level):
        assert SkillAssociation(skill_id="python", level=level).level == level

    @pytest.mark.parametrize("level", [0, 6, -1])
    def test_out_of_range_rejected(self, level):
        with pytest.raises(ValidationError):
            SkillAssociation(skill_id="python", level=level)

    def test_target_level_bounded(self):
        with pytest.raises(ValidationError):
            SkillTarget(skill_id="python", name="Python", level=9)


class TestGeneratedQuestion:
    def test_valid_question(self):
        q = GeneratedQuestion(question="Q?", options=["a", "b", "c", "d"], correct_answer="c")
        assert q.correct_answer in q.options

    def test_three_options_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedQuestion(question="Q?", options=["a", "b", "c"], correct_answer="a")

    def test_duplicate_options_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedQuestion(question="Q?", options=["a", "a", "c", "d"], correct_answer="a")

    def test_blank_option_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedQuestion(question="Q?", options=["a", " ", "c", "d"], correct_answer="a")

    def test_correct_answer_must_match_exactly(self):
        with pytest.raises(ValidationError):
            GeneratedQuestion(question="Q?", options=["a", "b", "c", "d"], correct_answer="A")

    def test_empty_text_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedQuestion(question="   ", options=["a", "b", "c", "d"], correct_answer="a")


class TestQuizQuestion:
    def test_factory_question_is_valid(self):
        q = make_question(1, correct_index=2)
        assert q.correct_answer == q.options[2]

    def test_shape_checked_on_construction(self):
        with pytest.raises(ValueError):
            QuizQuestion(id=1, quiz_id=1, skill_id="x", question_text="Q?",
                         options=["a", "b", "c", "d"], correct_answer="e")


class TestMisc:
    def test_skipped_property(self):
        assert QuizAnswer(id=1, question_id=1, answer_text="SKIPPED", is_correct=False).skipped

    def test_general_fit_answer_is_an_option(self):
        assert GENERAL_FIT_ANSWER in GENERAL_FIT_OPTIONS
        assert len(GENERAL_FIT_OPTIONS) == 4

    def test_visible_statuses(self):
        assert SCORE_VISIBLE_STATUSES == {
            ApplicationStatus.INTERVIEW, ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED,
        }
