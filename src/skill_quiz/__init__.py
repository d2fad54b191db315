"""
skill_quiz — Skill-based quiz assessment engine for a recruitment platform
==========================================================================
Package containing the skill matcher, question generator, quiz session
state machine, scoring and persistence used when a candidate applies to a
job (or asks for a practice quiz).

Module map
----------
  models.py               Shared dataclasses, Pydantic records and enums.
  config.py               Settings loaded from .env; two-tier LLM detection.
  errors.py               Exception hierarchy raised by the engine.
  guardrails.py           Validation rules for generated questions (Q-01..Q-08).
  generation_trace.py     Per-skill generation diagnostics (GenerationTrace).

  skill_matcher.py        Job ∩ candidate skill matching, practice targets.
  question_generator.py   LLM generation + deterministic fallback generator.
  session.py              Per-question timer + quiz session state machine.
  scoring.py              Per-skill / overall scores and visibility rule.
  database.py             SQLite persistence (quizzes, questions, answers).
  polling.py              Bounded-retry poller for the generated question set.
  engine.py               AssessmentEngine — wires everything together.
  seed_demo_data.py       Demo skills, jobs and applications for the CLI.
  cli.py                  Rich terminal demo: take a job quiz end to end.

Flow
----
  SkillMatcher → QuestionGenerator → (database) → QuizSession
  → scoring.score → database.complete_quiz → application status sync
"""
__version__ = "0.1.0"
