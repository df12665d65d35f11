"""
Shared pytest fixtures for all tests.

Provides an isolated in-memory database per test, row factories and fakes
for the two external collaborators (AI generator, FloCareer API).
"""

import json
from typing import Any, Callable, Generator, List, Optional, Union

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from skillsync import models  # noqa: F401
from skillsync.errors import ExternalServiceError
from skillsync.models import LikeStatus, Question, Regeneration, Requirement, Skill, SkillLevel, SkillRecord
from skillsync.schemas import ReqDetails


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """
    SQLite in-memory engine. StaticPool keeps one connection so every
    session (and the TestClient thread) sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


# =============================================================================
# ROW FACTORIES
# =============================================================================

@pytest.fixture
def make_record(session) -> Callable[..., SkillRecord]:
    def _make(**overrides) -> SkillRecord:
        data = {"job_title": "Backend Engineer", "req_id": 101, "user_id": 7, "round_id": None}
        data.update(overrides)
        record = SkillRecord(**data)
        session.add(record)
        session.commit()
        session.refresh(record)
        return record
    return _make


@pytest.fixture
def make_skill(session) -> Callable[..., Skill]:
    def _make(record: SkillRecord, **overrides) -> Skill:
        data = {
            "name": "Python",
            "level": SkillLevel.INTERMEDIATE,
            "requirement": Requirement.MANDATORY,
            "record_id": record.id,
        }
        data.update(overrides)
        skill = Skill(**data)
        session.add(skill)
        session.commit()
        session.refresh(skill)
        return skill
    return _make


@pytest.fixture
def make_question(session) -> Callable[..., Question]:
    def _make(skill: Skill, text: str = "What is a generator?", **overrides) -> Question:
        data = {
            "content": {"question": text, "answer": "A lazy iterator.", "questionFormat": "Open-ended", "coding": False},
            "skill_id": skill.id,
            "record_id": skill.record_id,
            "liked": LikeStatus.NONE,
        }
        data.update(overrides)
        question = Question(**data)
        session.add(question)
        session.commit()
        session.refresh(question)
        return question
    return _make


def all_regenerations(session: Session) -> List[Regeneration]:
    return list(session.exec(select(Regeneration)).all())


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

def question_json(text: str, **extra) -> dict:
    data = {
        "question": text,
        "answer": f"Answer to {text}",
        "category": "Technical",
        "difficulty": "Medium",
        "questionFormat": "Scenario",
        "coding": False,
    }
    data.update(extra)
    return data


class FakeGenerator:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, *responses: Union[str, dict, list, Exception]):
        self.responses = list(responses)
        self.calls: List[dict] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append({"system": system_prompt, "prompt": user_prompt})
        if not self.responses:
            raise AssertionError("FakeGenerator ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


class FakeFloCareerClient:
    def __init__(self, payload: Optional[Any] = None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls: List[tuple] = []

    async def get_req_details(self, req_id: int, user_id: int) -> ReqDetails:
        self.calls.append((req_id, user_id))
        if self.error is not None:
            raise self.error
        return ReqDetails.model_validate(self.payload)


@pytest.fixture
def failing_flocareer() -> FakeFloCareerClient:
    return FakeFloCareerClient(error=ExternalServiceError("FloCareer API error: 503"))
