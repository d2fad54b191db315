"""
skill_quiz/database.py — SQLite persistence for quizzes
=======================================================
Stores quizzes, their questions and answers, plus the skill / application
reference rows the engine reads.

Design decisions
----------------
- **One connection per call** — every method opens, commits and closes its
  own connection, so a QuizStore can be shared across threads.
- **Foreign keys ON** — quiz → questions → answers cascade on delete.
- **WAL journal mode** — readers (polling) never block the answer writer.
- **Last-write-once completion** — ``complete_quiz`` is a single UPDATE
  guarded by ``status != 'completed'``; the row count tells the caller
  whether it won.
- **Answers are append-only** — ``quiz_answers.question_id`` is UNIQUE and
  ``is_correct`` is computed here, at write time, by exact comparison.

Public API (QuizStore)
----------------------
  init_db()                              create tables + reserved general-fit skill
  upsert_skill / get_skill_names
  create_job / set_job_skills / get_job_skills
  set_employee_skills / get_employee_skills
  create_application / get_application / list_applications
  update_application_status
  create_quiz(employee_id, app_id)       → quiz id
  get_quiz / get_quiz_for_application / list_quizzes
  mark_in_progress(quiz_id)              pending → in_progress
  replace_questions(quiz_id, sets)       only while the quiz is pending
  get_questions(quiz_id)                 idempotent, ordered by position
  insert_answer(question_id, text)       → QuizAnswer
  get_answers(quiz_id)
  complete_quiz(quiz_id, score)          → True if this call completed it
  save_generation_trace / load_generation_trace
  delete_quiz(quiz_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

from skill_quiz.errors import InvalidTransition, QuizNotFound
from skill_quiz.models import (
    GENERAL_FIT_SKILL_ID,
    GENERAL_FIT_SKILL_NAME,
    SKIPPED,
    Application,
    ApplicationStatus,
    GeneratedQuestion,
    Quiz,
    QuizAnswer,
    QuizQuestion,
    QuizScore,
    QuizStatus,
    Skill,
    SkillAssociation,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS skills (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    description TEXT
);
CREATE TABLE IF NOT EXISTS jobs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    created_at  TEXT DEFAULT (datetime('now'))
);
CREATE TABLE IF NOT EXISTS job_skills (
    job_id      INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    skill_id    TEXT    NOT NULL REFERENCES skills(id),
    importance  INTEGER NOT NULL CHECK (importance BETWEEN 1 AND 5),
    position    INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (job_id, skill_id)
);
CREATE TABLE IF NOT EXISTS employee_skills (
    employee_id TEXT    NOT NULL,
    skill_id    TEXT    NOT NULL REFERENCES skills(id),
    proficiency INTEGER NOT NULL CHECK (proficiency BETWEEN 1 AND 5),
    position    INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (employee_id, skill_id)
);
CREATE TABLE IF NOT EXISTS applications (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id            INTEGER NOT NULL REFERENCES jobs(id),
    employee_id       TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'pending',
    interview_details TEXT,
    created_at        TEXT    DEFAULT (datetime('now'))
);
CREATE TABLE IF NOT EXISTS quizzes (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    employee_id           TEXT    NOT NULL,
    application_id        INTEGER UNIQUE REFERENCES applications(id),
    status                TEXT    NOT NULL DEFAULT 'pending'
                          CHECK (status IN ('pending', 'in_progress', 'completed')),
    score                 INTEGER,
    skill_scores_json     TEXT,
    generation_trace_json TEXT,
    created_at            TEXT    DEFAULT (datetime('now')),
    completed_at          TEXT
);
CREATE TABLE IF NOT EXISTS quiz_questions (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    quiz_id        INTEGER NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
    skill_id       TEXT    NOT NULL,
    question       TEXT    NOT NULL,
    options_json   TEXT    NOT NULL,
    correct_answer TEXT    NOT NULL,
    position       INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS quiz_answers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    question_id INTEGER NOT NULL UNIQUE REFERENCES quiz_questions(id) ON DELETE CASCADE,
    answer_text TEXT    NOT NULL,
    is_correct  INTEGER NOT NULL,
    created_at  TEXT    DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_quiz_questions_quiz ON quiz_questions(quiz_id, position);
CREATE INDEX IF NOT EXISTS idx_quizzes_employee ON quizzes(employee_id);
"""


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_quiz(row: sqlite3.Row) -> Quiz:
    keys = row.keys()
    return Quiz(
        id                = row["id"],
        owner_employee_id = row["employee_id"],
        application_id    = row["application_id"],
        status            = QuizStatus(row["status"]),
        created_at        = _ts(row["created_at"]),
        completed_at      = _ts(row["completed_at"]),
        score             = row["score"],
        skill_scores      = json.loads(row["skill_scores_json"]) if row["skill_scores_json"] else {},
        question_count    = row["question_count"] if "question_count" in keys else 0,
    )


def _row_to_application(row: sqlite3.Row) -> Application:
    return Application(
        id                = row["id"],
        job_id            = row["job_id"],
        employee_id       = row["employee_id"],
        status            = ApplicationStatus(row["status"]),
        interview_details = row["interview_details"],
    )


def _row_to_question(row: sqlite3.Row) -> QuizQuestion:
    return QuizQuestion(
        id             = row["id"],
        quiz_id        = row["quiz_id"],
        skill_id       = row["skill_id"],
        question_text  = row["question"],
        options        = json.loads(row["options_json"]),
        correct_answer = row["correct_answer"],
        position       = row["position"],
    )


def _row_to_answer(row: sqlite3.Row) -> QuizAnswer:
    return QuizAnswer(
        id          = row["id"],
        question_id = row["question_id"],
        answer_text = row["answer_text"],
        is_correct  = bool(row["is_correct"]),
    )


class QuizStore:
    """SQLite-backed persistence boundary for the engine."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def _get_conn(self) -> sqlite3.Connection:
        """Return a connection with row_factory and foreign keys set."""
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript(_SCHEMA)
        conn.execute(
            "INSERT OR IGNORE INTO skills (id, name, description) VALUES (?, ?, ?)",
            (GENERAL_FIT_SKILL_ID, GENERAL_FIT_SKILL_NAME,
             "Reserved slot for jobs that list no skills"),
        )
        conn.commit()
        conn.close()

    # ─── Skills ──────────────────────────────────────────────────────────────

    def upsert_skill(self, skill: Skill) -> None:
        conn = self._get_conn()
        conn.execute(
            """
            INSERT INTO skills (id, name, description) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name = excluded.name,
                                          description = excluded.description
            """,
            (skill.id, skill.name, skill.description),
        )
        conn.commit()
        conn.close()

    def get_skill_names(self, skill_ids: Optional[Sequence[str]] = None) -> dict[str, str]:
        conn = self._get_conn()
        rows = conn.execute("SELECT id, name FROM skills").fetchall()
        conn.close()
        names = {r["id"]: r["name"] for r in rows}
        if skill_ids is None:
            return names
        return {s: names[s] for s in skill_ids if s in names}

    # ─── Jobs & employee skills ──────────────────────────────────────────────

    def create_job(self, title: str) -> int:
        conn = self._get_conn()
        cur = conn.execute("INSERT INTO jobs (title) VALUES (?)", (title,))
        conn.commit()
        job_id = cur.lastrowid
        conn.close()
        return job_id

    def set_job_skills(self, job_id: int, skills: Sequence[SkillAssociation]) -> None:
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM job_skills WHERE job_id = ?", (job_id,))
            conn.executemany(
                "INSERT INTO job_skills (job_id, skill_id, importance, position) VALUES (?, ?, ?, ?)",
                [(job_id, s.skill_id, s.level, i) for i, s in enumerate(skills)],
            )
        conn.close()

    def get_job_skills(self, job_id: int) -> list[SkillAssociation]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT skill_id, importance FROM job_skills WHERE job_id = ? ORDER BY position",
            (job_id,),
        ).fetchall()
        conn.close()
        return [SkillAssociation(skill_id=r["skill_id"], subject_id=str(job_id), level=r["importance"])
                for r in rows]

    def set_employee_skills(self, employee_id: str, skills: Sequence[SkillAssociation]) -> None:
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM employee_skills WHERE employee_id = ?", (employee_id,))
            conn.executemany(
                "INSERT INTO employee_skills (employee_id, skill_id, proficiency, position) "
                "VALUES (?, ?, ?, ?)",
                [(employee_id, s.skill_id, s.level, i) for i, s in enumerate(skills)],
            )
        conn.close()

    def get_employee_skills(self, employee_id: str) -> list[SkillAssociation]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT skill_id, proficiency FROM employee_skills WHERE employee_id = ? ORDER BY position",
            (employee_id,),
        ).fetchall()
        conn.close()
        return [SkillAssociation(skill_id=r["skill_id"], subject_id=employee_id, level=r["proficiency"])
                for r in rows]

    # ─── Applications ────────────────────────────────────────────────────────

    def create_application(self, job_id: int, employee_id: str) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO applications (job_id, employee_id) VALUES (?, ?)",
            (job_id, employee_id),
        )
        conn.commit()
        app_id = cur.lastrowid
        conn.close()
        return app_id

    def get_application(self, application_id: int) -> Optional[Application]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM applications WHERE id = ?", (application_id,)).fetchone()
        conn.close()
        return _row_to_application(row) if row else None

    def list_applications(self, employee_id: str) -> list[Application]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM applications WHERE employee_id = ? ORDER BY id", (employee_id,),
        ).fetchall()
        conn.close()
        return [_row_to_application(r) for r in rows]

    def update_application_status(self, application_id: int, status: ApplicationStatus) -> None:
        conn = self._get_conn()
        conn.execute(
            "UPDATE applications SET status = ? WHERE id = ?",
            (ApplicationStatus(status).value, application_id),
        )
        conn.commit()
        conn.close()

    # ─── Quizzes ─────────────────────────────────────────────────────────────

    def create_quiz(self, employee_id: str, application_id: Optional[int] = None) -> int:
        conn = self._get_conn()
        cur = conn.execute(
            "INSERT INTO quizzes (employee_id, application_id, status) VALUES (?, ?, 'pending')",
            (employee_id, application_id),
        )
        conn.commit()
        quiz_id = cur.lastrowid
        conn.close()
        logger.info("Created quiz %d for %s (application=%s)", quiz_id, employee_id, application_id)
        return quiz_id

    def get_quiz(self, quiz_id: int) -> Optional[Quiz]:
        conn = self._get_conn()
        row = conn.execute(
            """
            SELECT q.*, (SELECT COUNT(*) FROM quiz_questions qq WHERE qq.quiz_id = q.id)
                   AS question_count
            FROM quizzes q WHERE q.id = ?
            """,
            (quiz_id,),
        ).fetchone()
        conn.close()
        return _row_to_quiz(row) if row else None

    def get_quiz_for_application(self, application_id: int) -> Optional[Quiz]:
        conn = self._get_conn()
        row = conn.execute("SELECT id FROM quizzes WHERE application_id = ?", (application_id,)).fetchone()
        conn.close()
        return self.get_quiz(row["id"]) if row else None

    def list_quizzes(self, employee_id: str) -> list[Quiz]:
        """All quizzes of an employee, newest first, with question counts."""
        conn = self._get_conn()
        rows = conn.execute(
            """
            SELECT q.*, COUNT(qq.id) AS question_count
            FROM quizzes q
            LEFT JOIN quiz_questions qq ON qq.quiz_id = q.id
            WHERE q.employee_id = ?
            GROUP BY q.id
            ORDER BY q.created_at DESC, q.id DESC
            """,
            (employee_id,),
        ).fetchall()
        conn.close()
        return [_row_to_quiz(r) for r in rows]

    def mark_in_progress(self, quiz_id: int) -> bool:
        """pending → in_progress.  Returns False if the quiz was not pending."""
        conn = self._get_conn()
        cur = conn.execute(
            "UPDATE quizzes SET status = 'in_progress' WHERE id = ? AND status = 'pending'",
            (quiz_id,),
        )
        conn.commit()
        conn.close()
        return cur.rowcount == 1

    def complete_quiz(self, quiz_id: int, result: QuizScore) -> bool:
        """
        Write the terminal state exactly once.  Returns True when this call
        completed the quiz, False when it was already completed.
        """
        conn = self._get_conn()
        cur = conn.execute(
            """
            UPDATE quizzes SET
                status = 'completed',
                score = ?,
                skill_scores_json = ?,
                completed_at = datetime('now')
            WHERE id = ? AND status != 'completed'
            """,
            (result.overall, json.dumps(result.per_skill), quiz_id),
        )
        conn.commit()
        conn.close()
        return cur.rowcount == 1

    def delete_quiz(self, quiz_id: int) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM quizzes WHERE id = ?", (quiz_id,))
        conn.commit()
        conn.close()

    def save_generation_trace(self, quiz_id: int, trace_json: str) -> None:
        conn = self._get_conn()
        conn.execute("UPDATE quizzes SET generation_trace_json = ? WHERE id = ?", (trace_json, quiz_id))
        conn.commit()
        conn.close()

    def load_generation_trace(self, quiz_id: int) -> Optional[str]:
        conn = self._get_conn()
        row = conn.execute("SELECT generation_trace_json FROM quizzes WHERE id = ?", (quiz_id,)).fetchone()
        conn.close()
        return row["generation_trace_json"] if row else None

    # ─── Questions ───────────────────────────────────────────────────────────

    def replace_questions(
        self,
        quiz_id: int,
        questions: Sequence[tuple[str, GeneratedQuestion]],
    ) -> list[QuizQuestion]:
        """
        Replace the whole question set of a quiz that has not been started.
        ``questions`` is a sequence of (skill_id, question) in quiz order.
        """
        conn = self._get_conn()
        try:
            with conn:
                row = conn.execute("SELECT status FROM quizzes WHERE id = ?", (quiz_id,)).fetchone()
                if row is None:
                    raise QuizNotFound(quiz_id)
                if row["status"] != QuizStatus.PENDING.value:
                    raise InvalidTransition(
                        f"Quiz {quiz_id} is {row['status']}; questions can only be replaced before it starts."
                    )
                conn.execute("DELETE FROM quiz_questions WHERE quiz_id = ?", (quiz_id,))
                conn.executemany(
                    """
                    INSERT INTO quiz_questions
                        (quiz_id, skill_id, question, options_json, correct_answer, position)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (quiz_id, skill_id, q.question, json.dumps(q.options), q.correct_answer, pos)
                        for pos, (skill_id, q) in enumerate(questions)
                    ],
                )
        finally:
            conn.close()
        logger.info("Stored %d questions for quiz %d", len(questions), quiz_id)
        return self.get_questions(quiz_id)

    def get_questions(self, quiz_id: int) -> list[QuizQuestion]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM quiz_questions WHERE quiz_id = ? ORDER BY position, id",
            (quiz_id,),
        ).fetchall()
        conn.close()
        return [_row_to_question(r) for r in rows]

    # ─── Answers ─────────────────────────────────────────────────────────────

    def insert_answer(self, question_id: int, answer_text: str) -> QuizAnswer:
        """Append the single answer row for a question; is_correct computed here."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT qq.correct_answer, q.status
                FROM quiz_questions qq JOIN quizzes q ON q.id = qq.quiz_id
                WHERE qq.id = ?
                """,
                (question_id,),
            ).fetchone()
            if row is None:
                raise InvalidTransition(f"Question {question_id} does not exist.")
            if row["status"] == QuizStatus.COMPLETED.value:
                raise InvalidTransition(f"Question {question_id} belongs to a completed quiz.")
            is_correct = answer_text != SKIPPED and answer_text == row["correct_answer"]
            try:
                cur = conn.execute(
                    "INSERT INTO quiz_answers (question_id, answer_text, is_correct) VALUES (?, ?, ?)",
                    (question_id, answer_text, int(is_correct)),
                )
            except sqlite3.IntegrityError as exc:
                raise InvalidTransition(f"Question {question_id} already has an answer.") from exc
            conn.commit()
            answer_id = cur.lastrowid
        finally:
            conn.close()
        return QuizAnswer(id=answer_id, question_id=question_id,
                          answer_text=answer_text, is_correct=is_correct)

    def get_answers(self, quiz_id: int) -> list[QuizAnswer]:
        conn = self._get_conn()
        rows = conn.execute(
            """
            SELECT a.* FROM quiz_answers a
            JOIN quiz_questions qq ON qq.id = a.question_id
            WHERE qq.quiz_id = ?
            ORDER BY qq.position, qq.id
            """,
            (quiz_id,),
        ).fetchall()
        conn.close()
        return [_row_to_answer(r) for r in rows]
