"""
seed_demo_data.py
─────────────────
Populate a quiz database with a small demo world for the CLI: a handful of
skills, a backend job, a skill-less ambassador job and one candidate who
has applied to both.

Safe to re-run: skills are upserted, and the job/application rows are only
created when the demo candidate has no applications yet.
"""

from __future__ import annotations

from skill_quiz.database import QuizStore
from skill_quiz.models import Skill, SkillAssociation

DEMO_EMPLOYEE_ID = "emp-alex"

DEMO_SKILLS = [
    Skill(id="python", name="Python",     description="General-purpose programming language"),
    Skill(id="sql",    name="SQL",        description="Relational query language"),
    Skill(id="java",   name="Java",       description="JVM programming language"),
    Skill(id="docker", name="Docker",     description="Container packaging and runtime"),
    Skill(id="react",  name="React",      description="Front-end UI library"),
]


def _assoc(skill_id: str, level: int, subject: str) -> SkillAssociation:
    return SkillAssociation(skill_id=skill_id, subject_id=subject, level=level)


def seed_demo_data(store: QuizStore) -> dict[str, object]:
    """Seed (or look up) the demo rows.  Returns the ids the CLI needs."""
    store.init_db()
    for skill in DEMO_SKILLS:
        store.upsert_skill(skill)

    store.set_employee_skills(DEMO_EMPLOYEE_ID, [
        _assoc("python", 2, DEMO_EMPLOYEE_ID),
        _assoc("java",   5, DEMO_EMPLOYEE_ID),
        _assoc("docker", 3, DEMO_EMPLOYEE_ID),
    ])

    apps = store.list_applications(DEMO_EMPLOYEE_ID)
    if len(apps) >= 2:
        return {
            "employee_id":               DEMO_EMPLOYEE_ID,
            "backend_job_id":            apps[0].job_id,
            "backend_application_id":    apps[0].id,
            "ambassador_job_id":         apps[1].job_id,
            "ambassador_application_id": apps[1].id,
        }

    backend_job = store.create_job("Backend Engineer")
    store.set_job_skills(backend_job, [
        _assoc("python", 4, str(backend_job)),
        _assoc("sql",    2, str(backend_job)),
    ])
    ambassador_job = store.create_job("Community Ambassador")   # no skills → general fit

    return {
        "employee_id":               DEMO_EMPLOYEE_ID,
        "backend_job_id":            backend_job,
        "backend_application_id":    store.create_application(backend_job, DEMO_EMPLOYEE_ID),
        "ambassador_job_id":         ambassador_job,
        "ambassador_application_id": store.create_application(ambassador_job, DEMO_EMPLOYEE_ID),
    }
