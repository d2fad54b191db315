"""
skill_matcher.py — Decide which skills a quiz should cover
==========================================================
Job quiz:      job skills ∩ candidate skills, at the job's importance level,
               in job order.  Empty intersection → every job skill.
               Job without skills → the single general-fit slot.
Practice quiz: the candidate's own skills at their own proficiency.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from skill_quiz.errors import MissingPrerequisite
from skill_quiz.models import (
    GENERAL_FIT_SKILL_ID,
    GENERAL_FIT_SKILL_NAME,
    SkillAssociation,
    SkillTarget,
)

logger = logging.getLogger(__name__)


def general_fit_target() -> SkillTarget:
    return SkillTarget(skill_id=GENERAL_FIT_SKILL_ID, name=GENERAL_FIT_SKILL_NAME, level=1)


def match(
    job_skills: Sequence[SkillAssociation],
    candidate_skills: Sequence[SkillAssociation],
) -> list[SkillAssociation]:
    """
    Return the job skills the quiz should test, carrying the job's importance.

    An empty job skill list yields one association for the general-fit slot.
    """
    if not job_skills:
        logger.info("Job has no skills; using the general-fit slot")
        return [SkillAssociation(skill_id=GENERAL_FIT_SKILL_ID, level=1)]

    held    = {s.skill_id for s in candidate_skills}
    matched = [s for s in job_skills if s.skill_id in held]
    if not matched:
        logger.info("No overlap between job and candidate skills; testing all %d job skills",
                    len(job_skills))
        return list(job_skills)
    return matched


def practice_targets(candidate_skills: Sequence[SkillAssociation]) -> list[SkillAssociation]:
    """Practice mode tests the candidate's own skills at their proficiency."""
    if not candidate_skills:
        raise MissingPrerequisite(
            "Add at least one skill to your profile before generating a practice quiz."
        )
    return list(candidate_skills)


def to_targets(
    associations: Sequence[SkillAssociation],
    skill_names: Mapping[str, str],
    *,
    dedupe: bool = True,
) -> list[SkillTarget]:
    """Resolve skill ids to generator targets; unknown ids use the id as name."""
    targets: list[SkillTarget] = []
    seen: set[str] = set()
    for assoc in associations:
        if dedupe and assoc.skill_id in seen:
            continue
        seen.add(assoc.skill_id)
        if assoc.skill_id == GENERAL_FIT_SKILL_ID:
            targets.append(general_fit_target())
            continue
        name: Optional[str] = skill_names.get(assoc.skill_id)
        targets.append(SkillTarget(
            skill_id=assoc.skill_id,
            name=name or assoc.skill_id,
            level=assoc.level,
        ))
    return targets
