import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session

from skillsync.constants import LOG_LEVEL, SYNC_CHUNK_SIZE
from skillsync.database import create_db_and_tables, get_session
from skillsync.errors import ChunkApplyError, InputValidationError, SkillSyncError
from skillsync.models import Question, Regeneration
from skillsync.schemas import DislikeRequest, FeedbackRegenerationRequest, SkillRegenerationRequest
from skillsync.services.analytics import regeneration_analytics, regeneration_history
from skillsync.services.batch_applier import BatchApplier
from skillsync.services.flocareer_client import FloCareerClient
from skillsync.services.llm_client import build_generator
from skillsync.services.regeneration import RegenerationEngine, RegenerationOutcome
from skillsync.services.sync_service import ReqDetailsSync, parse_correlation

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("skillsync")

app = FastAPI(title="SkillSync")


@app.on_event("startup")
def on_startup():
    create_db_and_tables()


# Dependencies

@lru_cache
def get_sync_service() -> ReqDetailsSync:
    return ReqDetailsSync(FloCareerClient(), BatchApplier(SYNC_CHUNK_SIZE))


@lru_cache
def get_regeneration_engine() -> RegenerationEngine:
    return RegenerationEngine(build_generator())


async def read_optional_json(request: Request) -> Dict[str, Any]:
    '''
    Decode the request body, treating a missing or invalid body as empty.
    '''
    try:
        body = await request.json()
    except ValueError:
        logger.warning("No request body provided or invalid JSON")
        return {}
    return body if isinstance(body, dict) else {}


# Error handlers

@app.exception_handler(SkillSyncError)
async def skillsync_error_handler(request: Request, exc: SkillSyncError):
    content: Dict[str, Any] = {"success": False, "error": exc.message}
    if isinstance(exc, ChunkApplyError):
        content["details"] = exc.to_dict()
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Internal server error"})


# Serializers

def question_payload(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "content": question.content,
        "coding": question.coding,
        "liked": question.liked,
        "deleted": question.deleted,
        "skillId": question.skill_id,
        "recordId": question.record_id,
    }


def regeneration_payload(regeneration: Regeneration) -> Dict[str, Any]:
    return {
        "id": regeneration.id,
        "originalQuestionId": regeneration.original_question_id,
        "newQuestionId": regeneration.new_question_id,
        "reason": regeneration.reason,
        "userFeedback": regeneration.user_feedback,
        "skillId": regeneration.skill_id,
        "recordId": regeneration.record_id,
        "createdAt": regeneration.created_at.isoformat(),
    }


def outcome_payload(outcome: RegenerationOutcome) -> Dict[str, Any]:
    return {
        "success": True,
        "message": f"Regenerated {outcome.regenerated} questions",
        "regenerated": outcome.regenerated,
        "requested": outcome.requested,
        "shortfall": outcome.shortfall,
        "warnings": outcome.warnings,
        "failedSkills": outcome.failed_skills,
        "questions": [question_payload(q) for q in outcome.questions],
        "regenerations": [regeneration_payload(r) for r in outcome.regenerations],
    }


def parse_body(model, body: Dict[str, Any]):
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise InputValidationError(f"Invalid request body: {e.error_count()} error(s)") from e


# Routes

@app.post("/records/sync-req-details")
async def sync_req_details(
    request: Request,
    session: Session = Depends(get_session),
    sync_service: ReqDetailsSync = Depends(get_sync_service),
):
    '''
    Converge the local record matching (req, userId) towards the FloCareer snapshot.
    '''
    req_id, user_id = parse_correlation(await read_optional_json(request))
    summary = await sync_service.sync(session, req_id, user_id)
    logger.info("Synchronized req %s user %s: %s", req_id, user_id, summary)
    return {"success": True, "message": "Synchronized with FloCareer req details", "summary": summary}


@app.post("/questions/{question_id}/regenerate-dislike")
async def regenerate_disliked_question(
    question_id: str,
    request: Request,
    session: Session = Depends(get_session),
    engine: RegenerationEngine = Depends(get_regeneration_engine),
):
    '''
    Replace a disliked question and record why.
    '''
    body = parse_body(DislikeRequest, await read_optional_json(request))
    outcome = await engine.regenerate_question(session, question_id, body.reason, body.user_feedback)
    payload = outcome_payload(outcome)
    payload["message"] = "Successfully regenerated question"
    payload["question"] = question_payload(outcome.questions[0])
    return payload


@app.post("/records/{record_id}/regenerate-with-feedback")
async def regenerate_with_feedback(
    record_id: str,
    request: Request,
    session: Session = Depends(get_session),
    engine: RegenerationEngine = Depends(get_regeneration_engine),
):
    '''
    Regenerate the questions of a record from per-question and global feedback.
    '''
    body = parse_body(FeedbackRegenerationRequest, await read_optional_json(request))
    outcome = await engine.regenerate_with_feedback(session, record_id, body.feedback, body.global_feedback)
    payload = outcome_payload(outcome)
    payload["message"] = f"Regenerated {outcome.regenerated} questions based on feedback"
    return payload


@app.post("/records/{record_id}/regenerate-questions-from-skill")
async def regenerate_questions_from_skill(
    record_id: str,
    request: Request,
    session: Session = Depends(get_session),
    engine: RegenerationEngine = Depends(get_regeneration_engine),
):
    '''
    Regenerate every active question of one skill.
    '''
    body = parse_body(SkillRegenerationRequest, await read_optional_json(request))
    outcome = await engine.regenerate_skill(session, record_id, body.skill_id, body.feedback)
    return outcome_payload(outcome)


@app.get("/questions/{question_id}/regenerations")
def list_question_regenerations(question_id: str, session: Session = Depends(get_session)):
    '''
    List the audit rows touching a question, oldest first.
    '''
    return {"regenerations": [regeneration_payload(r) for r in regeneration_history(session, question_id)]}


@app.get("/analytics/regenerations")
def get_regeneration_analytics(
    recordId: Optional[str] = None,
    skillId: Optional[str] = None,
    limit: int = 10,
    session: Session = Depends(get_session),
):
    return regeneration_analytics(session, record_id=recordId, skill_id=skillId, limit=limit)
