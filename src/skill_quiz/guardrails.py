"""
guardrails.py – Validation rules for generated quiz questions
=============================================================
Every item returned by the external generator passes through these checks
before it may enter a quiz.  Items with a BLOCK violation are dropped by the
generator (and logged at DEBUG); WARN and INFO violations are kept for the
generation trace only.

Guardrail levels
----------------
BLOCK   – Hard-stop: the item (or set) is rejected.
WARN    – Soft-stop: accepted, with a visible note in the trace.
INFO    – Advisory: informational note.

Guards implemented
------------------
Item guards (one raw generated item):
  Q-01  Question text is a non-empty string
  Q-02  Options is a list of exactly 4 entries
  Q-03  Every option is a non-empty string
  Q-04  Options are distinct
  Q-05  correct_answer is a string equal to one of the options
  Q-06  Explanation present                                   [INFO]

Set guards (a finished per-skill question set):
  Q-07  No duplicate question text after normalisation
  Q-08  Set size equals the requested count
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from skill_quiz.models import OPTION_COUNT, GeneratedQuestion


# ─── Enums & data models ─────────────────────────────────────────────────────

class GuardrailLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"
    INFO  = "INFO"


@dataclass
class GuardrailViolation:
    code:    str
    level:   GuardrailLevel
    message: str
    field:   str = ""   # which field triggered the violation


@dataclass
class GuardrailResult:
    passed:     bool
    violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(v.level == GuardrailLevel.BLOCK for v in self.violations)

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.WARN]

    @property
    def infos(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.INFO]

    def summary(self) -> str:
        if not self.violations:
            return "✅ All guardrails passed."
        icons = {GuardrailLevel.BLOCK: "🚫", GuardrailLevel.WARN: "⚠️", GuardrailLevel.INFO: "ℹ️"}
        return "\n".join(f"{icons[v.level]} [{v.code}] {v.message}" for v in self.violations)


def _result(violations: list[GuardrailViolation]) -> GuardrailResult:
    return GuardrailResult(
        passed=not any(v.level == GuardrailLevel.BLOCK for v in violations),
        violations=violations,
    )


_WS = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lower-case and collapse whitespace; the key used for de-duplication."""
    return _WS.sub(" ", text).strip().lower()


# ─── Item guards ─────────────────────────────────────────────────────────────

class QuestionItemGuardrails:
    """Q-01 – Q-06: structural checks on one raw generated item."""

    def check(self, item: Any) -> GuardrailResult:
        violations: list[GuardrailViolation] = []

        if not isinstance(item, dict):
            violations.append(GuardrailViolation(
                code="Q-01", level=GuardrailLevel.BLOCK,
                message=f"Item is a {type(item).__name__}, not an object.",
            ))
            return _result(violations)

        # Q-01 Question text
        text = item.get("question")
        if not isinstance(text, str) or not text.strip():
            violations.append(GuardrailViolation(
                code="Q-01", level=GuardrailLevel.BLOCK,
                message="Question text is missing or empty.", field="question",
            ))

        # Q-02 Exactly four options
        options = item.get("options")
        if not isinstance(options, list) or len(options) != OPTION_COUNT:
            n = len(options) if isinstance(options, list) else 0
            violations.append(GuardrailViolation(
                code="Q-02", level=GuardrailLevel.BLOCK,
                message=f"Expected {OPTION_COUNT} options, got {n}.", field="options",
            ))
            options = []

        # Q-03 Non-empty string options
        if any(not isinstance(o, str) or not o.strip() for o in options):
            violations.append(GuardrailViolation(
                code="Q-03", level=GuardrailLevel.BLOCK,
                message="Every option must be a non-empty string.", field="options",
            ))
        # Q-04 Distinct options
        elif options and len(set(options)) != len(options):
            violations.append(GuardrailViolation(
                code="Q-04", level=GuardrailLevel.BLOCK,
                message="Options contain duplicates.", field="options",
            ))

        # Q-05 Correct answer is one of the options (exact match)
        correct = item.get("correct_answer")
        if not isinstance(correct, str) or not correct or correct not in options:
            violations.append(GuardrailViolation(
                code="Q-05", level=GuardrailLevel.BLOCK,
                message="correct_answer does not exactly match any option.",
                field="correct_answer",
            ))

        # Q-06 Explanation
        explanation = item.get("explanation")
        if not isinstance(explanation, str) or not explanation.strip():
            violations.append(GuardrailViolation(
                code="Q-06", level=GuardrailLevel.INFO,
                message="No explanation supplied.", field="explanation",
            ))

        return _result(violations)


# ─── Set guards ──────────────────────────────────────────────────────────────

class QuestionSetGuardrails:
    """Q-07 – Q-08: checks on a finished per-skill question set."""

    def check(self, questions: Sequence[GeneratedQuestion], expected: int) -> GuardrailResult:
        violations: list[GuardrailViolation] = []

        # Q-07 Normalised duplicates
        seen: set[str] = set()
        dups: list[str] = []
        for q in questions:
            key = normalize_text(q.question)
            if key in seen:
                dups.append(q.question)
            seen.add(key)
        if dups:
            violations.append(GuardrailViolation(
                code="Q-07", level=GuardrailLevel.BLOCK,
                message=f"{len(dups)} duplicate question text(s): {dups[:3]}",
            ))

        # Q-08 Size
        if len(questions) != expected:
            violations.append(GuardrailViolation(
                code="Q-08", level=GuardrailLevel.BLOCK,
                message=f"Question set has {len(questions)} items, expected {expected}.",
            ))

        return _result(violations)


# ─── Facade ──────────────────────────────────────────────────────────────────

class GuardrailsPipeline:
    """
    Single entry-point for question validation.

    Usage::

        gp = GuardrailsPipeline()
        item_result = gp.check_item(raw_dict)
        set_result  = gp.check_set(questions, expected=10)
    """

    def __init__(self):
        self.item_guard = QuestionItemGuardrails()
        self.set_guard  = QuestionSetGuardrails()

    def check_item(self, item: Any) -> GuardrailResult:
        return self.item_guard.check(item)

    def check_set(self, questions: Sequence[GeneratedQuestion], expected: int) -> GuardrailResult:
        return self.set_guard.check(questions, expected)

    def merge(self, *results: GuardrailResult) -> GuardrailResult:
        """Merge multiple GuardrailResult objects into one."""
        all_v = []
        for r in results:
            all_v.extend(r.violations)
        return _result(all_v)
