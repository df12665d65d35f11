from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, or_
from sqlmodel import Session, select

from skillsync.models import Regeneration, Skill, utcnow

TREND_DAYS = 30


def regeneration_history(session: Session, question_id: str) -> List[Regeneration]:
    """Audit rows where the question is either the replaced or the replacing one, oldest first."""
    return list(
        session.exec(
            select(Regeneration)
            .where(or_(Regeneration.original_question_id == question_id, Regeneration.new_question_id == question_id))
            .order_by(Regeneration.created_at)
        ).all()
    )


def regeneration_analytics(
    session: Session,
    record_id: Optional[str] = None,
    skill_id: Optional[str] = None,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    Summarizes regenerations: total count, most regenerated skills and
    per-day counts over the last 30 days.

    Args:
        session (Session): Database session.
        record_id (Optional[str]): Restrict to one record.
        skill_id (Optional[str]): Restrict to one skill.
        limit (int): Number of skills to return.
    Returns:
        Dict[str, Any]: totalRegenerations, mostRegeneratedSkills and trendsByDay.
    """
    filters = []
    if record_id:
        filters.append(Regeneration.record_id == record_id)
    if skill_id:
        filters.append(Regeneration.skill_id == skill_id)

    total = session.exec(select(func.count(Regeneration.id)).where(*filters)).one()

    count_column = func.count(Regeneration.id).label("regeneration_count")
    by_skill = session.exec(
        select(Regeneration.skill_id, Skill.name, count_column)
        .join(Skill, Skill.id == Regeneration.skill_id, isouter=True)
        .where(*filters)
        .group_by(Regeneration.skill_id, Skill.name)
        .order_by(desc(count_column))
        .limit(limit)
    ).all()

    since = utcnow() - timedelta(days=TREND_DAYS)
    created = session.exec(
        select(Regeneration.created_at).where(*filters, Regeneration.created_at >= since)
    ).all()
    trends: Dict[str, int] = {}
    for created_at in created:
        day = created_at.date().isoformat()
        trends[day] = trends.get(day, 0) + 1

    return {
        "totalRegenerations": total,
        "mostRegeneratedSkills": [
            {"skillId": skill, "skillName": name or "Unknown", "regenerationCount": count}
            for skill, name, count in by_skill
        ],
        "trendsByDay": dict(sorted(trends.items())),
    }
