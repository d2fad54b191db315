"""
Tests for the SQLite store (database.py).
Each test gets a fresh database file under tmp_path.
"""
import json
import sqlite3

import pytest

from factories import make_assoc, make_store

from skill_quiz.errors import InvalidTransition, QuizNotFound
from skill_quiz.models import (
    GENERAL_FIT_SKILL_ID,
    SKIPPED,
    ApplicationStatus,
    GeneratedQuestion,
    QuizScore,
    QuizStatus,
)


def _gq(n, correct=1):
    opts = [f"choice {n}{c}" for c in "abcd"]
    return GeneratedQuestion(question=f"Stored question {n}?", options=opts, correct_answer=opts[correct])


@pytest.fixture
def store(tmp_path):
    return make_store(tmp_path)


@pytest.fixture
def quiz_with_questions(store):
    quiz_id = store.create_quiz("emp-1")
    questions = store.replace_questions(quiz_id, [
        ("python", _gq(1)), ("python", _gq(2)), ("sql", _gq(3)),
    ])
    return quiz_id, questions


class TestInit:
    def test_init_is_idempotent(self, store):
        store.init_db()
        store.init_db()
        assert GENERAL_FIT_SKILL_ID in store.get_skill_names()

    def test_skill_names_filtered(self, store):
        assert store.get_skill_names(["python", "nope"]) == {"python": "Python"}


class TestSkillsAndApplications:
    def test_job_skills_keep_order(self, store):
        job_id = store.create_job("Backend")
        store.set_job_skills(job_id, [make_assoc("sql", 2), make_assoc("python", 4)])
        skills = store.get_job_skills(job_id)
        assert [(s.skill_id, s.level) for s in skills] == [("sql", 2), ("python", 4)]
        assert skills[0].subject_id == str(job_id)

    def test_employee_skills_replaced(self, store):
        store.set_employee_skills("emp-1", [make_assoc("java", 5)])
        store.set_employee_skills("emp-1", [make_assoc("python", 2)])
        assert [s.skill_id for s in store.get_employee_skills("emp-1")] == ["python"]

    def test_unknown_skill_rejected(self, store):
        with pytest.raises(sqlite3.IntegrityError):
            store.set_employee_skills("emp-1", [make_assoc("cobol", 3)])

    def test_application_roundtrip(self, store):
        job_id = store.create_job("Backend")
        app_id = store.create_application(job_id, "emp-1")
        app = store.get_application(app_id)
        assert app.status == ApplicationStatus.PENDING
        store.update_application_status(app_id, ApplicationStatus.QUIZ_COMPLETED)
        assert store.get_application(app_id).status == ApplicationStatus.QUIZ_COMPLETED
        assert [a.id for a in store.list_applications("emp-1")] == [app_id]

    def test_missing_application_is_none(self, store):
        assert store.get_application(404) is None


class TestQuizzes:
    def test_new_quiz_is_pending(self, store):
        quiz = store.get_quiz(store.create_quiz("emp-1"))
        assert quiz.status == QuizStatus.PENDING
        assert quiz.is_practice
        assert quiz.score is None
        assert quiz.skill_scores == {}

    def test_one_quiz_per_application(self, store):
        job_id = store.create_job("Backend")
        app_id = store.create_application(job_id, "emp-1")
        quiz_id = store.create_quiz("emp-1", app_id)
        assert store.get_quiz_for_application(app_id).id == quiz_id
        with pytest.raises(sqlite3.IntegrityError):
            store.create_quiz("emp-1", app_id)

    def test_mark_in_progress_only_from_pending(self, store):
        quiz_id = store.create_quiz("emp-1")
        assert store.mark_in_progress(quiz_id)
        assert not store.mark_in_progress(quiz_id)
        assert store.get_quiz(quiz_id).status == QuizStatus.IN_PROGRESS

    def test_complete_writes_once(self, store):
        quiz_id = store.create_quiz("emp-1")
        assert store.complete_quiz(quiz_id, QuizScore(overall=71, per_skill={"A": 60, "B": 100}))
        assert not store.complete_quiz(quiz_id, QuizScore(overall=0, per_skill={"A": 0, "B": 0}))
        quiz = store.get_quiz(quiz_id)
        assert quiz.status == QuizStatus.COMPLETED
        assert quiz.score == 71
        assert quiz.skill_scores == {"A": 60, "B": 100}
        assert quiz.completed_at is not None

    def test_list_quizzes_with_counts(self, store, quiz_with_questions):
        quiz_id, _ = quiz_with_questions
        empty_id = store.create_quiz("emp-1")
        store.create_quiz("emp-2")
        listed = store.list_quizzes("emp-1")
        assert [q.id for q in listed] == [empty_id, quiz_id]
        assert [q.question_count for q in listed] == [0, 3]

    def test_generation_trace_roundtrip(self, store):
        quiz_id = store.create_quiz("emp-1")
        assert store.load_generation_trace(quiz_id) is None
        store.save_generation_trace(quiz_id, json.dumps({"run_id": "abc"}))
        assert json.loads(store.load_generation_trace(quiz_id)) == {"run_id": "abc"}


class TestQuestions:
    def test_questions_in_position_order(self, quiz_with_questions):
        _, questions = quiz_with_questions
        assert [q.position for q in questions] == [0, 1, 2]
        assert [q.skill_id for q in questions] == ["python", "python", "sql"]
        assert questions[0].correct_answer == "choice 1b"

    def test_get_questions_is_idempotent(self, store, quiz_with_questions):
        quiz_id, questions = quiz_with_questions
        assert store.get_questions(quiz_id) == questions
        assert store.get_questions(quiz_id) == questions
        assert store.get_quiz(quiz_id).question_count == 3

    def test_replace_while_pending(self, store, quiz_with_questions):
        quiz_id, _ = quiz_with_questions
        replaced = store.replace_questions(quiz_id, [("java", _gq(9))])
        assert [q.question_text for q in replaced] == ["Stored question 9?"]

    def test_replace_after_start_rejected(self, store, quiz_with_questions):
        quiz_id, questions = quiz_with_questions
        store.mark_in_progress(quiz_id)
        with pytest.raises(InvalidTransition):
            store.replace_questions(quiz_id, [("java", _gq(9))])
        assert store.get_questions(quiz_id) == questions

    def test_replace_unknown_quiz(self, store):
        with pytest.raises(QuizNotFound):
            store.replace_questions(999, [("java", _gq(9))])


class TestAnswers:
    def test_correct_answer_flagged(self, store, quiz_with_questions):
        _, questions = quiz_with_questions
        assert store.insert_answer(questions[0].id, "choice 1b").is_correct
        assert not store.insert_answer(questions[1].id, "choice 2a").is_correct

    def test_skipped_is_never_correct(self, store):
        quiz_id = store.create_quiz("emp-1")
        opts = ["SKIPPED", "b", "c", "d"]
        q = store.replace_questions(quiz_id, [
            ("python", GeneratedQuestion(question="Odd?", options=opts, correct_answer="SKIPPED")),
        ])[0]
        assert not store.insert_answer(q.id, SKIPPED).is_correct

    def test_second_answer_rejected(self, store, quiz_with_questions):
        _, questions = quiz_with_questions
        store.insert_answer(questions[0].id, "choice 1a")
        with pytest.raises(InvalidTransition):
            store.insert_answer(questions[0].id, "choice 1b")
        assert [a.answer_text for a in store.get_answers(questions[0].quiz_id)] == ["choice 1a"]

    def test_answer_after_completion_rejected(self, store, quiz_with_questions):
        quiz_id, questions = quiz_with_questions
        store.complete_quiz(quiz_id, QuizScore(overall=0, per_skill={"python": 0, "sql": 0}))
        with pytest.raises(InvalidTransition):
            store.insert_answer(questions[0].id, "choice 1b")

    def test_unknown_question_rejected(self, store):
        with pytest.raises(InvalidTransition):
            store.insert_answer(12345, "x")

    def test_delete_cascades(self, store, quiz_with_questions):
        quiz_id, questions = quiz_with_questions
        store.insert_answer(questions[0].id, SKIPPED)
        store.delete_quiz(quiz_id)
        assert store.get_quiz(quiz_id) is None
        assert store.get_questions(quiz_id) == []
        assert store.get_answers(quiz_id) == []
