import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlmodel import Session, select

from skillsync.analysis.reconciliation import reconcile
from skillsync.errors import InputValidationError, NoDataError, NotFoundError
from skillsync.models import SkillRecord
from skillsync.mutations import sync_summary
from skillsync.schemas import Round
from skillsync.services.batch_applier import BatchApplier
from skillsync.services.flocareer_client import FloCareerClient

logger = logging.getLogger(__name__)

USER_ID_KEYS = ("userId", "userid", "user_id")


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_correlation(body: Optional[Mapping[str, Any]]) -> Tuple[int, int]:
    """
    Reads the (req, userId) pair from a request body.

    Args:
        body (Optional[Mapping[str, Any]]): Decoded JSON body; None when absent or invalid.
    Returns:
        Tuple[int, int]: Requisition id and platform user id.
    Raises:
        InputValidationError: When either id is missing or not a whole number.
    """
    body = body or {}
    req_raw = body.get("req")
    user_raw = next((body[key] for key in USER_ID_KEYS if body.get(key) is not None), None)
    if req_raw is None or user_raw is None:
        raise InputValidationError("'req' and 'userId' are required in body")

    req_id, user_id = _as_int(req_raw), _as_int(user_raw)
    if req_id is None or user_id is None:
        raise InputValidationError("'req' and 'userId' must be numbers")
    return req_id, user_id


def has_usable_entities(round_: Round) -> bool:
    if any(skill.correlation_id for skill in round_.skill_matrix):
        return True
    return any(
        pool.pool_id is not None and any(q.question_id is not None for q in pool.questions)
        for pool in round_.question_pools
    )


class ReqDetailsSync:
    """
    Pulls a requisition snapshot from the recruiting platform and converges
    the matching local record towards it.

    Runs for the same record must be serialized by the caller.
    """

    def __init__(self, client: FloCareerClient, applier: Optional[BatchApplier] = None):
        self.client = client
        self.applier = applier or BatchApplier()

    async def sync(self, session: Session, req_id: int, user_id: int) -> Dict[str, Any]:
        """
        Args:
            session (Session): Database session.
            req_id (int): Requisition id on the platform.
            user_id (int): Platform user owning the requisition.
        Returns:
            Dict[str, Any]: Committed change counts plus record and round ids.
        """
        record = session.exec(
            select(SkillRecord).where(SkillRecord.req_id == req_id, SkillRecord.user_id == user_id)
        ).first()
        if record is None:
            raise NotFoundError("SkillRecord not found for provided req and userId")

        details = await self.client.get_req_details(req_id, user_id)
        if not details.rounds:
            raise NoDataError("No rounds found in FloCareer response")

        selected = details.select_round(record.round_id)
        if not has_usable_entities(selected):
            raise NoDataError(f"No usable skills or questions in FloCareer round {selected.round_id}")

        mutations = reconcile(record.skills, record.questions, selected.skill_matrix, selected.question_pools)
        logger.info(
            "Syncing record %s with round %s: %d skill and %d question changes",
            record.id, selected.round_id, len(mutations.skills), len(mutations.questions),
        )
        result = self.applier.apply(session, mutations.all())

        summary: Dict[str, Any] = sync_summary(result.counts)
        summary["recordId"] = record.id
        summary["roundId"] = selected.round_id
        return summary
