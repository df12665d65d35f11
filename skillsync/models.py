import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SkillLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    PROFESSIONAL = "PROFESSIONAL"
    EXPERT = "EXPERT"


class Requirement(str, Enum):
    MANDATORY = "MANDATORY"
    OPTIONAL = "OPTIONAL"


class LikeStatus(str, Enum):
    LIKED = "LIKED"
    DISLIKED = "DISLIKED"
    NONE = "NONE"


class SkillRecord(SQLModel, table=True):
    """
    Parent record grouping the skills and questions generated for one job
    description. Correlated with the recruiting platform by (req_id, user_id).
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    job_title: Optional[str] = None
    req_id: Optional[int] = Field(default=None, index=True)
    user_id: Optional[int] = Field(default=None, index=True)
    round_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)

    skills: List["Skill"] = Relationship(back_populates="record")
    questions: List["Question"] = Relationship(back_populates="record")


class Skill(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    level: SkillLevel = Field(default=SkillLevel.INTERMEDIATE)
    requirement: Requirement = Field(default=Requirement.MANDATORY)
    category: Optional[str] = Field(default="TECHNICAL")

    # Local-only annotations, never touched by reconciliation
    priority: Optional[int] = None
    num_questions: int = Field(default=1)
    difficulty: Optional[str] = None
    question_format: Optional[str] = None
    feedback: Optional[str] = None

    # External correlation (recruiting platform skill id)
    flo_career_id: Optional[int] = Field(default=None, index=True)
    deleted: bool = Field(default=False)

    record_id: str = Field(foreign_key="skillrecord.id", index=True)
    record: SkillRecord = Relationship(back_populates="skills")
    questions: List["Question"] = Relationship(back_populates="skill")


class Question(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)

    # Opaque payload: question, answer, category, difficulty, questionFormat, coding
    content: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    coding: bool = Field(default=False)

    liked: LikeStatus = Field(default=LikeStatus.NONE)
    feedback: Optional[str] = None

    deleted: bool = Field(default=False, index=True)
    deleted_feedback: Optional[str] = None

    # External correlation. The pool id only means something when flo_career_id is set.
    flo_career_id: Optional[int] = Field(default=None, index=True)
    flo_career_pool_id: Optional[int] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    skill_id: str = Field(foreign_key="skill.id", index=True)
    record_id: str = Field(foreign_key="skillrecord.id", index=True)
    skill: Skill = Relationship(back_populates="questions")
    record: SkillRecord = Relationship(back_populates="questions")


class Regeneration(SQLModel, table=True):
    """
    Append-only audit row linking the question that was replaced to the one
    that replaced it. Both ids are equal for in-place regeneration.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    original_question_id: str = Field(foreign_key="question.id", index=True)
    new_question_id: str = Field(foreign_key="question.id", index=True)
    reason: str
    user_feedback: Optional[str] = None
    skill_id: str = Field(foreign_key="skill.id", index=True)
    record_id: str = Field(foreign_key="skillrecord.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
