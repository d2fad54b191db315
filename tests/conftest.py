"""
Shared pytest fixtures for the Skill Quiz test suite.
All fixtures use mock mode — no LLM credentials required.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os
import random

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# Force mock mode — never call a real LLM during tests
os.environ["FORCE_MOCK_MODE"] = "true"
os.environ.setdefault("AZURE_OPENAI_ENDPOINT", "<placeholder>")
os.environ.setdefault("AZURE_OPENAI_API_KEY",  "<placeholder>")
os.environ.setdefault("OPENAI_API_KEY",        "<placeholder>")


import pytest

from factories import FakeClock, make_assoc, make_settings, make_store

from skill_quiz.engine import AssessmentEngine
from skill_quiz.models import Principal, ViewerRole
from skill_quiz.question_generator import QuestionGenerator


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def settings():
    return make_settings(questions_per_skill=3)


@pytest.fixture
def store(tmp_path):
    return make_store(tmp_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(store, settings, clock):
    return AssessmentEngine(
        store,
        generator=QuestionGenerator(settings),
        settings=settings,
        clock=clock,
        rng=random.Random(7),
        sleep=lambda _s: None,
    )


@pytest.fixture
def candidate():
    return Principal(user_id="emp-1", role=ViewerRole.EMPLOYEE)


@pytest.fixture
def other_candidate():
    return Principal(user_id="emp-2", role=ViewerRole.EMPLOYEE)


@pytest.fixture
def employer():
    return Principal(user_id="boss-1", role=ViewerRole.EMPLOYER)


@pytest.fixture
def job_application(store, candidate):
    """Job python(4) + sql(2); candidate python(2) + java(5)."""
    job_id = store.create_job("Backend Engineer")
    store.set_job_skills(job_id, [make_assoc("python", 4), make_assoc("sql", 2)])
    store.set_employee_skills(candidate.user_id, [make_assoc("python", 2), make_assoc("java", 5)])
    return store.create_application(job_id, candidate.user_id)


@pytest.fixture
def empty_job_application(store, candidate):
    """A job without skills, candidate without skills."""
    job_id = store.create_job("Community Ambassador")
    return store.create_application(job_id, candidate.user_id)
