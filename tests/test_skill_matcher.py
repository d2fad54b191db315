"""
Tests for skill matching: job ∩ candidate, fallbacks, practice mode.
"""
import pytest

from factories import make_assoc

from skill_quiz import skill_matcher
from skill_quiz.errors import MissingPrerequisite
from skill_quiz.models import GENERAL_FIT_SKILL_ID


class TestMatch:
    def test_job_importance_wins(self):
        job  = [make_assoc("python", 4), make_assoc("sql", 2)]
        cand = [make_assoc("python", 2), make_assoc("java", 5)]
        result = skill_matcher.match(job, cand)
        assert [(s.skill_id, s.level) for s in result] == [("python", 4)]

    def test_job_order_preserved(self):
        job  = [make_assoc("sql", 3), make_assoc("docker", 1), make_assoc("python", 5)]
        cand = [make_assoc("python", 1), make_assoc("sql", 1), make_assoc("docker", 1)]
        assert [s.skill_id for s in skill_matcher.match(job, cand)] == ["sql", "docker", "python"]

    def test_empty_intersection_uses_all_job_skills(self):
        job  = [make_assoc("python", 4), make_assoc("sql", 2)]
        cand = [make_assoc("java", 5)]
        result = skill_matcher.match(job, cand)
        assert [(s.skill_id, s.level) for s in result] == [("python", 4), ("sql", 2)]

    def test_candidate_without_skills_gets_all_job_skills(self):
        job = [make_assoc("python", 4)]
        assert [s.skill_id for s in skill_matcher.match(job, [])] == ["python"]

    def test_empty_job_gives_general_fit_slot(self):
        result = skill_matcher.match([], [make_assoc("python", 3)])
        assert len(result) == 1
        assert result[0].skill_id == GENERAL_FIT_SKILL_ID

    def test_empty_job_and_candidate_gives_general_fit_slot(self):
        assert [s.skill_id for s in skill_matcher.match([], [])] == [GENERAL_FIT_SKILL_ID]


class TestPractice:
    def test_uses_candidate_proficiency(self):
        cand = [make_assoc("python", 2), make_assoc("java", 5)]
        result = skill_matcher.practice_targets(cand)
        assert [(s.skill_id, s.level) for s in result] == [("python", 2), ("java", 5)]

    def test_no_skills_raises_user_facing_error(self):
        with pytest.raises(MissingPrerequisite, match="Add at least one skill"):
            skill_matcher.practice_targets([])


class TestToTargets:
    def test_resolves_names(self):
        targets = skill_matcher.to_targets([make_assoc("python", 4)], {"python": "Python"})
        assert targets[0].name == "Python"
        assert targets[0].level == 4

    def test_unknown_name_falls_back_to_id(self):
        targets = skill_matcher.to_targets([make_assoc("rust", 2)], {})
        assert targets[0].name == "rust"

    def test_general_fit_target(self):
        targets = skill_matcher.to_targets([make_assoc(GENERAL_FIT_SKILL_ID, 1)], {})
        assert targets[0].is_general_fit

    def test_duplicate_ids_collapsed(self):
        targets = skill_matcher.to_targets(
            [make_assoc("python", 4), make_assoc("python", 2)], {"python": "Python"},
        )
        assert len(targets) == 1
        assert targets[0].level == 4
