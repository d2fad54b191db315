"""
question_generator.py — Question Bank Generator
===============================================
Produces exactly ``count`` validated multiple-choice questions for one skill
at a target level (1=beginner … 5=expert).

---------------------------------------------------------------------------
Pipeline for one skill
---------------------------------------------------------------------------
  1. LLM call (highest configured tier, JSON mode)
  2. Per-item guardrails (Q-01 – Q-06); BLOCK items are dropped
  3. De-duplication on normalised text (lowercase, whitespace collapsed)
  4. Shortfall filled by the deterministic fallback generator
  5. Validated items first, synthesized after, truncated to ``count``

Any LLM problem (no credentials, timeout, quota, malformed JSON) is turned
into GenerationUnavailable inside ``_call_llm`` and handled as "zero valid
items", so ``generate`` never raises for generation problems.

---------------------------------------------------------------------------
LLM tiers (chooses the highest available tier)
---------------------------------------------------------------------------
  1. Azure OpenAI   — AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY
  2. OpenAI         — OPENAI_API_KEY
  3. none           — every question comes from the fallback generator

---------------------------------------------------------------------------
Fallback generator
---------------------------------------------------------------------------
  12 question templates × 27 topic phrases × 4 option-template groups,
  addressed by a running index.  Index i maps to template i mod 12 and a
  topic chosen so that indices 0..323 cover every (template, topic) pair
  exactly once; past that a "(scenario N)" suffix keeps texts distinct.
  The correct option is (i + level) mod 4.
"""

from __future__ import annotations

import json
import logging
import textwrap
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from openai import AzureOpenAI, OpenAI

from skill_quiz.config import Settings, get_settings
from skill_quiz.errors import GenerationUnavailable
from skill_quiz.generation_trace import SkillGenerationStep
from skill_quiz.guardrails import GuardrailsPipeline, normalize_text
from skill_quiz.models import (
    GENERAL_FIT_ANSWER,
    GENERAL_FIT_OPTIONS,
    GENERAL_FIT_QUESTION,
    GeneratedQuestion,
    SkillTarget,
)

logger = logging.getLogger(__name__)


# ─── Prompts ─────────────────────────────────────────────────────────────────

_SYSTEM_PROMPT = (
    "You are an expert education assessment creator specializing in creating "
    "diverse, unique, and challenging quiz questions. Each question you create "
    "must be substantially different from others in both content and structure."
)

_USER_PROMPT = textwrap.dedent("""\
    Generate exactly {count} unique multiple-choice questions about "{name}" at proficiency level {level} (1=beginner, 5=expert).

    CRITICAL REQUIREMENTS:
    1. Each question MUST be entirely unique in both content and structure
    2. Each question MUST address a different aspect or concept of {name}
    3. Questions MUST vary in format, complexity, and focus
    4. Each question MUST have 4 distinctly different answer options (labeled A, B, C, D)
    5. All options MUST be concrete, realistic choices - not generic or placeholder text
    6. Only ONE option can be correct for each question
    7. The correct answer MUST match EXACTLY with one of the provided options

    Respond with a JSON object of this structure:
    {{"questions": [{{
      "question": "Specific, clear question text",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correct_answer": "The exact text of the correct option",
      "explanation": "Brief explanation of why this answer is correct"
    }}]}}

    Difficulty guidelines based on proficiency level:
    - Level 1: Basic knowledge, fundamental concepts, terminology
    - Level 2: Elementary applications, simple problem-solving
    - Level 3: Intermediate concepts, practical applications
    - Level 4: Advanced concepts, complex problem-solving
    - Level 5: Expert-level understanding, edge cases, optimization

    Questions should reflect real-world scenarios and test genuine understanding, not just memorization.
""")

_MAX_TOKENS = 4000


# ─── Fallback content library ────────────────────────────────────────────────

_LEVEL_PREFIX = {
    1: "[BEGINNER]",
    2: "[BASIC]",
    3: "[INTERMEDIATE]",
    4: "[ADVANCED]",
    5: "[EXPERT]",
}

_QUESTION_TEMPLATES = [
    "What is the most effective approach to {topic} in {skill}?",
    "Which {topic} is considered best practice in {skill}?",
    "When implementing {skill}, which {topic} should be prioritized?",
    "In the context of {skill}, how should you handle {topic}?",
    "What is the primary advantage of using {topic} in {skill}?",
    "Which of the following correctly describes {topic} in {skill}?",
    "How does {topic} impact the overall effectiveness of {skill}?",
    "What distinguishes successful implementation of {topic} in {skill}?",
    "Which approach to {topic} is most suitable for {skill} projects?",
    "What is a common misconception about {topic} in {skill}?",
    "How has {topic} evolved in modern {skill} practices?",
    "What challenge is most commonly encountered when dealing with {topic} in {skill}?",
]

_TOPICS = [
    "principles", "methodologies", "best practices", "common challenges",
    "tools", "techniques", "implementation strategies", "case studies",
    "frameworks", "certification paths", "leadership roles", "performance metrics",
    "evaluation methods", "testing approaches", "documentation standards",
    "risk mitigation", "quality assurance", "optimization techniques",
    "resource allocation", "stakeholder management", "team collaboration",
    "knowledge transfer", "continuous improvement", "compliance requirements",
    "ethical considerations", "technological innovations", "industry standards",
]

# Each group yields the four options of one question, in A–D order.
_OPTION_TEMPLATES = [
    ["{approach} with focus on {aspect}",
     "{alt_approach} emphasizing {other_aspect}",
     "{wrong_approach} that neglects {key_aspect}",
     "{confused_approach} from {skill} adjacent discipline"],
    ["{skill} {topic} technique {n} combined with {support_aspect}",
     "Traditional {topic} method that was previously standard",
     "Conceptual {topic} framework",
     "Adapted {topic} methodology adapted to this context"],
    ["{topic} alignment principle as established by {authority}",
     "{topic} approximation principle with critical flaws",
     "{topic} fallacy often taught incorrectly",
     "Generalized {topic} principle inappropriately applied"],
    ["Optimized {topic} approach validated through {validation}",
     "Innovative {topic} methodology still gaining acceptance",
     "Conventional {topic} process now considered outdated",
     "{topic} substitute practice that serves different purpose"],
]

_APPROACHES   = ["Iterative", "Agile", "Waterfall", "Lean", "Hybrid", "Systematic", "Integrated", "Modular"]
_ASPECTS      = ["efficiency", "scalability", "maintainability", "performance",
                 "user experience", "security", "reliability"]
_AUTHORITIES  = ["industry experts", "recent research", "ISO standards", "case studies",
                 "professional organizations"]
_VALIDATIONS  = ["empirical studies", "practical implementation", "peer review", "longitudinal research"]

_PAIR_SPACE = len(_QUESTION_TEMPLATES) * len(_TOPICS)


def _topic_index(index: int) -> int:
    p = index % _PAIR_SPACE
    t = p % len(_QUESTION_TEMPLATES)
    q = p // len(_QUESTION_TEMPLATES)
    # 13 is coprime with 27, so (t, topic) is a bijection over one cycle.
    return (q * (len(_QUESTION_TEMPLATES) + 1) + t) % len(_TOPICS)


def _fallback_options(skill: SkillTarget, index: int, topic: str) -> list[str]:
    group = _OPTION_TEMPLATES[index % len(_OPTION_TEMPLATES)]
    options = []
    for k, template in enumerate(group):
        j = index + k
        text = template.format(
            skill=skill.name,
            topic=topic,
            n=j,
            approach=_APPROACHES[j % len(_APPROACHES)],
            alt_approach=_APPROACHES[(j + 2) % len(_APPROACHES)],
            wrong_approach=_APPROACHES[(j + 4) % len(_APPROACHES)],
            confused_approach=_APPROACHES[(j + 6) % len(_APPROACHES)],
            aspect=_ASPECTS[j % len(_ASPECTS)],
            other_aspect=_ASPECTS[(j + 3) % len(_ASPECTS)],
            key_aspect=_ASPECTS[(j + 5) % len(_ASPECTS)],
            support_aspect=_ASPECTS[(j + 1) % len(_ASPECTS)],
            authority=_AUTHORITIES[j % len(_AUTHORITIES)],
            validation=_VALIDATIONS[j % len(_VALIDATIONS)],
        )
        options.append(f"{chr(65 + k)}. {text}")
    return options


def fallback_question(skill: SkillTarget, index: int) -> GeneratedQuestion:
    """Deterministic synthetic question number ``index`` for ``skill``."""
    t_idx = index % len(_QUESTION_TEMPLATES)
    tp_idx = _topic_index(index)
    topic = _TOPICS[tp_idx]

    text = _QUESTION_TEMPLATES[t_idx].format(topic=topic, skill=skill.name)
    prefix = _LEVEL_PREFIX.get(skill.level, "[GENERAL]")
    if skill.level >= 4:
        extra = _TOPICS[(tp_idx + 5) % len(_TOPICS)]
        text = f"{prefix} {text} Consider specifically scenarios involving {extra}."
    else:
        text = f"{prefix} {text}"
    cycle = index // _PAIR_SPACE
    if cycle:
        text = f"{text} (scenario {cycle + 1})"

    options = _fallback_options(skill, index, topic)
    return GeneratedQuestion(
        question=text,
        options=options,
        correct_answer=options[(index + skill.level) % 4],
        explanation=(
            f"This is the correct approach for {topic} in {skill.name} because it properly "
            f"addresses the key considerations at proficiency level {skill.level}."
        ),
        source="fallback",
    )


def fallback_questions(
    skill: SkillTarget,
    count: int,
    start: int = 0,
    seen: Optional[set[str]] = None,
) -> list[GeneratedQuestion]:
    """
    ``count`` synthesized questions starting at running index ``start``.

    Texts whose normalised form is already in ``seen`` are skipped (the
    index keeps advancing); ``seen`` is updated in place.
    """
    seen = seen if seen is not None else set()
    out: list[GeneratedQuestion] = []
    index = start
    while len(out) < count:
        q = fallback_question(skill, index)
        index += 1
        key = normalize_text(q.question)
        if key in seen:
            continue
        seen.add(key)
        out.append(q)
    return out


def general_fit_question() -> GeneratedQuestion:
    """The fixed question used when a job lists no skills."""
    return GeneratedQuestion(
        question=GENERAL_FIT_QUESTION,
        options=list(GENERAL_FIT_OPTIONS),
        correct_answer=GENERAL_FIT_ANSWER,
        source="fixed",
    )


# ─── Payload parsing ─────────────────────────────────────────────────────────

def extract_items(payload: Any) -> list[Any]:
    """
    Pull the question list out of a decoded LLM response.

    Accepted shapes: a bare array; ``{"questions": [...]}``; or any object
    whose first non-empty array-valued key holds objects with a "question".
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if isinstance(payload.get("questions"), list):
            return payload["questions"]
        for value in payload.values():
            if isinstance(value, list) and value and isinstance(value[0], dict) and value[0].get("question"):
                return value
    raise GenerationUnavailable(f"Unexpected response shape: {type(payload).__name__}")


# ─── Results ─────────────────────────────────────────────────────────────────

@dataclass
class SkillQuestionSet:
    """Questions for one skill plus the diagnostics of producing them."""
    target:    SkillTarget
    questions: list[GeneratedQuestion]
    step:      SkillGenerationStep


# ─── Generator ───────────────────────────────────────────────────────────────

class QuestionGenerator:
    """
    Always returns exactly ``count`` valid, de-duplicated questions.

    Usage::

        gen = QuestionGenerator()
        questions = gen.generate(SkillTarget(skill_id="python", name="Python", level=3), 10)
        sets = gen.generate_batch(targets, 10)       # parallel, input order kept

    A pre-built client exposing ``chat.completions.create`` may be injected
    (tests pass a stub); otherwise the client comes from settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Any = None,
        model: Optional[str] = None,
    ) -> None:
        self._settings  = settings or get_settings()
        self._guard     = GuardrailsPipeline()
        self._client    = client
        self._model     = model or self._settings.openai.model
        self.tier       = "custom" if client is not None else "fallback"

        if client is not None or not self._settings.live_mode:
            return

        timeout = self._settings.quiz.generation_timeout
        # ── Tier 1 — Azure OpenAI ────────────────────────────────────────────
        if self._settings.azure.is_configured:
            self._client = AzureOpenAI(
                azure_endpoint=self._settings.azure.endpoint,
                api_key=self._settings.azure.api_key,
                api_version=self._settings.azure.api_version,
                timeout=timeout,
                max_retries=0,
            )
            self._model = model or self._settings.azure.deployment
            self.tier   = "azure_openai"
        # ── Tier 2 — OpenAI ──────────────────────────────────────────────────
        elif self._settings.openai.is_configured:
            self._client = OpenAI(
                api_key=self._settings.openai.api_key,
                timeout=timeout,
                max_retries=0,
            )
            self.tier = "openai"

    @property
    def _fallback_level(self) -> int:
        """Fallback is routine without an LLM tier; with one it is a degradation."""
        return logging.INFO if self._client is None else logging.WARNING

    # ── LLM call ─────────────────────────────────────────────────────────────

    def _call_llm(self, skill: SkillTarget, count: int) -> list[Any]:
        if self._client is None:
            raise GenerationUnavailable(
                "No LLM tier is configured. Set AZURE_OPENAI_ENDPOINT + "
                "AZURE_OPENAI_API_KEY or OPENAI_API_KEY, and unset FORCE_MOCK_MODE."
            )
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user",   "content": _USER_PROMPT.format(
                        count=count, name=skill.name, level=skill.level)},
                ],
                temperature=self._settings.quiz.generation_temperature,
                max_tokens=_MAX_TOKENS,
            )
            content = response.choices[0].message.content or ""
            payload = json.loads(content)
        except GenerationUnavailable:
            raise
        except Exception as exc:
            raise GenerationUnavailable(f"{type(exc).__name__}: {exc}") from exc
        return extract_items(payload)

    # ── Public interface ──────────────────────────────────────────────────────

    def generate(self, skill: SkillTarget, count: int) -> list[GeneratedQuestion]:
        """Return exactly ``count`` questions for ``skill``."""
        return self.generate_with_trace(skill, count).questions

    def generate_with_trace(self, skill: SkillTarget, count: int) -> SkillQuestionSet:
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")

        started = time.perf_counter()
        step = SkillGenerationStep(
            skill_id=skill.skill_id, skill_name=skill.name, level=skill.level,
            tier=self.tier, requested=count,
        )
        accepted: list[GeneratedQuestion] = []
        seen: set[str] = set()

        if count and skill.is_general_fit:
            fixed = general_fit_question()
            accepted.append(fixed)
            seen.add(normalize_text(fixed.question))
            step.tier = "fixed"
        elif count:
            try:
                items = self._call_llm(skill, count)
            except GenerationUnavailable as exc:
                logger.log(self._fallback_level, "Generation unavailable for %s, using fallback: %s",
                           skill.name, exc)
                step.warnings.append(str(exc))
                items = []
            step.returned = len(items)

            for n, item in enumerate(items):
                check = self._guard.check_item(item)
                if check.blocked:
                    step.dropped += 1
                    logger.debug("Dropped item %d for %s: %s", n, skill.name,
                                 "; ".join(v.message for v in check.violations))
                    continue
                key = normalize_text(item["question"])
                if key in seen:
                    step.duplicates += 1
                    logger.debug("Dropped duplicate item %d for %s", n, skill.name)
                    continue
                seen.add(key)
                if check.infos:
                    step.detail["no_explanation"] = step.detail.get("no_explanation", 0) + 1
                explanation = item.get("explanation")
                accepted.append(GeneratedQuestion(
                    question=item["question"],
                    options=list(item["options"]),
                    correct_answer=item["correct_answer"],
                    explanation=explanation if isinstance(explanation, str) else "",
                    source="llm",
                ))
            step.valid = len(accepted)

        accepted = accepted[:count]
        shortfall = count - len(accepted)
        if shortfall > 0:
            accepted.extend(fallback_questions(skill, shortfall, start=len(accepted), seen=seen))
            step.synthesized = shortfall
            if step.tier != "fixed":
                logger.log(self._fallback_level, "Fallback generator filled %d/%d questions for %s",
                           shortfall, count, skill.name)

        step.duration_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.info("Generated %d questions for %s (level %d): %d llm, %d synthesized",
                    len(accepted), skill.name, skill.level, step.valid, step.synthesized)
        return SkillQuestionSet(target=skill, questions=accepted, step=step)

    def generate_batch(
        self,
        skills: Sequence[SkillTarget],
        count: int,
        max_workers: int = 4,
    ) -> list[SkillQuestionSet]:
        """One generate() per skill in parallel; results follow input order."""
        if not skills:
            return []
        with ThreadPoolExecutor(max_workers=min(max_workers, len(skills))) as executor:
            futures = [executor.submit(self.generate_with_trace, s, count) for s in skills]
            return [f.result() for f in futures]
