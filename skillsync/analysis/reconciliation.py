from typing import Any, Dict, Iterable, List, Optional, Set

from skillsync.analysis.field_mapper import map_level, map_requirement
from skillsync.models import Question, Skill
from skillsync.mutations import MutationSet, Patch
from skillsync.schemas import ExternalSkill, QuestionPool


def pair_key(pool_id: Optional[int], question_id: int) -> str:
    return f"{pool_id or 0}:{question_id}"


def reconcile_skills(local_skills: Iterable[Skill], external_skills: Iterable[ExternalSkill]) -> List[Patch]:
    """
    Computes the patches that bring local skills in line with the platform's
    skill matrix. Only skills that already carry an external id take part;
    fields the platform does not know about are never touched.

    Args:
        local_skills (Iterable[Skill]): Skills of the local record, deleted ones included.
        external_skills (Iterable[ExternalSkill]): Skill matrix of the selected round.
    Returns:
        List[Patch]: One patch per skill that needs to change.
    """
    remote_by_id: Dict[str, ExternalSkill] = {}
    for remote in external_skills:
        correlation_id = remote.correlation_id
        if correlation_id and correlation_id not in remote_by_id:
            remote_by_id[correlation_id] = remote

    patches: List[Patch] = []
    for local in local_skills:
        if local.flo_career_id is None:
            continue

        remote = remote_by_id.get(local.id)
        if remote is None:
            if not local.deleted:
                patches.append(Patch(Skill, local.id, {"deleted": True}, ("deleted",)))
            continue

        changes: Dict[str, Any] = {}
        tags = ["updated"]
        if local.deleted:
            changes["deleted"] = False
            tags.append("undeleted")
        if remote.skill_id and local.flo_career_id != remote.skill_id:
            changes["flo_career_id"] = remote.skill_id

        requirement = map_requirement(remote.requirement)
        if requirement is not None and local.requirement != requirement:
            changes["requirement"] = requirement
        level = map_level(remote.level)
        if level is not None and local.level != level:
            changes["level"] = level

        if remote.name and remote.name != local.name:
            changes["name"] = remote.name

        if changes:
            patches.append(Patch(Skill, local.id, changes, tuple(tags)))
    return patches


def reconcile_questions(local_questions: Iterable[Question], external_pools: Iterable[QuestionPool]) -> List[Patch]:
    """
    Computes the patches that bring pushed questions in line with the
    platform's question pools. A question counts as present when its
    (pool, id) pair exists, or when its id exists in any pool.

    Args:
        local_questions (Iterable[Question]): Questions of the local record, deleted ones included.
        external_pools (Iterable[QuestionPool]): Question pools of the selected round.
    Returns:
        List[Patch]: One patch per question that needs to change.
    """
    remote_pairs: Set[str] = set()
    remote_pool_by_question: Dict[int, int] = {}
    for pool in external_pools:
        if pool.pool_id is None:
            continue
        for remote in pool.questions:
            if remote.question_id is None:
                continue
            remote_pairs.add(pair_key(pool.pool_id, remote.question_id))
            remote_pool_by_question[remote.question_id] = pool.pool_id

    patches: List[Patch] = []
    for local in local_questions:
        if local.flo_career_id is None:
            continue

        exists = (
            pair_key(local.flo_career_pool_id, local.flo_career_id) in remote_pairs
            or local.flo_career_id in remote_pool_by_question
        )
        if not exists:
            if not local.deleted:
                patches.append(Patch(Question, local.id, {"deleted": True}, ("deleted",)))
            continue

        changes: Dict[str, Any] = {}
        tags = ["updated"]
        if local.deleted:
            changes["deleted"] = False
            changes["deleted_feedback"] = None
            tags.append("undeleted")
        desired_pool = remote_pool_by_question.get(local.flo_career_id, local.flo_career_pool_id)
        if desired_pool and local.flo_career_pool_id != desired_pool:
            changes["flo_career_pool_id"] = desired_pool
            tags.append("poolSet")

        if changes:
            patches.append(Patch(Question, local.id, changes, tuple(tags)))
    return patches


def reconcile(
    local_skills: Iterable[Skill],
    local_questions: Iterable[Question],
    external_skills: Iterable[ExternalSkill],
    external_pools: Iterable[QuestionPool],
) -> MutationSet:
    """
    Three-way diff of local state against an external snapshot. Running it
    again after the returned mutations are applied yields an empty set.
    """
    return MutationSet(
        skills=reconcile_skills(local_skills, external_skills),
        questions=reconcile_questions(local_questions, external_pools),
    )
