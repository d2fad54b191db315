"""
generation_trace.py — Audit record for question-set generation
==============================================================
Each per-skill generate() call emits a SkillGenerationStep.  The engine
collects the steps of one quiz into a GenerationTrace and stores it on the
quiz row (quizzes.generation_trace_json) so fallback activation can be
reviewed after the fact.

Key fields
----------
  SkillGenerationStep.tier         "azure_openai" | "openai" | "fallback" | "fixed"
  SkillGenerationStep.returned     raw items the LLM returned
  SkillGenerationStep.dropped      items failing a BLOCK guardrail
  SkillGenerationStep.duplicates   items rejected as normalised duplicates
  SkillGenerationStep.synthesized  items filled in by the fallback generator
  SkillGenerationStep.detail       extra counters, e.g. "no_explanation"
  GenerationTrace.mode             "live" | "mock"
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SkillGenerationStep:
    """One skill's contribution inside a generation run."""
    skill_id:    str
    skill_name:  str
    level:       int
    tier:        str
    requested:   int
    returned:    int = 0
    valid:       int = 0
    dropped:     int = 0
    duplicates:  int = 0
    synthesized: int = 0
    duration_ms: float = 0.0
    warnings:    list[str] = field(default_factory=list)
    detail:      dict[str, Any] = field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return self.synthesized > 0


@dataclass
class GenerationTrace:
    """Full trace for generating one quiz's question set."""
    run_id:    str
    quiz_id:   int
    timestamp: str
    mode:      str
    total_ms:  float = 0.0
    steps:     list[SkillGenerationStep] = field(default_factory=list)

    def append(self, step: SkillGenerationStep) -> None:
        self.steps.append(step)

    @property
    def fallback_skills(self) -> list[str]:
        return [s.skill_id for s in self.steps if s.used_fallback]

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "GenerationTrace":
        data  = json.loads(raw)
        steps = [SkillGenerationStep(**s) for s in data.pop("steps", [])]
        return cls(steps=steps, **data)


def new_trace(quiz_id: int, mode: str) -> GenerationTrace:
    return GenerationTrace(
        run_id    = str(uuid.uuid4())[:8].upper(),
        quiz_id   = quiz_id,
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        mode      = mode,
    )
