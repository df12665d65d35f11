from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from skillsync.constants import DEFAULT_QUESTION_FORMAT

CODING_HINTS = ("code", "algorithm", "programming")


# Recruiting platform payload (GET /req-details/{req}/{user}/)

class ExternalSkill(BaseModel):
    model_config = ConfigDict(extra="ignore")

    skill_id: Optional[int] = None
    name: Optional[str] = None
    level: Optional[str] = None
    requirement: Optional[str] = None
    # Our own skill id, echoed back by the platform
    ai_skill_id: Optional[str] = None

    @property
    def correlation_id(self) -> Optional[str]:
        value = (self.ai_skill_id or "").strip()
        return value or None


class ExternalQuestion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question_id: Optional[int] = None
    ai_question_id: Optional[str] = None


class QuestionPool(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pool_id: Optional[int] = None
    name: Optional[str] = None
    num_of_questions_to_ask: Optional[int] = None
    questions: List[ExternalQuestion] = Field(default_factory=list)


class Round(BaseModel):
    model_config = ConfigDict(extra="ignore")

    round_id: Optional[int] = None
    interview_type: Optional[str] = None
    interview_duration: Optional[int] = None
    interviewer_briefing: Optional[str] = None
    skill_matrix: List[ExternalSkill] = Field(default_factory=list)
    question_pools: List[QuestionPool] = Field(default_factory=list)


class ReqDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    job_title: Optional[str] = None
    job_description: Optional[str] = None
    company_name: Optional[str] = None
    min_experience: Optional[float] = None
    max_experience: Optional[float] = None
    rounds: List[Round] = Field(default_factory=list)

    def select_round(self, preferred_round_id: Optional[int]) -> Optional[Round]:
        """Round matching the stored round id, otherwise the first one."""
        if not self.rounds:
            return None
        for round_ in self.rounds:
            if preferred_round_id is not None and round_.round_id == preferred_round_id:
                return round_
        return self.rounds[0]


# Generator output

class GeneratedQuestion(BaseModel):
    """
    One question produced by the AI service. Only `question` is required;
    the rest fall back to neutral values.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    question: str
    answer: str = ""
    category: Optional[str] = None
    difficulty: Optional[str] = None
    question_format: str = Field(default=DEFAULT_QUESTION_FORMAT, alias="questionFormat")
    coding: bool = False

    @field_validator("answer", mode="before")
    @classmethod
    def default_answer(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("question_format", mode="before")
    @classmethod
    def default_question_format(cls, value: Any) -> Any:
        return value or DEFAULT_QUESTION_FORMAT

    @field_validator("category", "difficulty", mode="before")
    @classmethod
    def scalar_to_text(cls, value: Any) -> Any:
        # Models sometimes answer with a number, e.g. "difficulty": 3
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("coding", mode="before")
    @classmethod
    def default_coding(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def derive_coding_flag(self) -> "GeneratedQuestion":
        text = self.question.lower()
        if self.question_format.lower() == "coding" or any(hint in text for hint in CODING_HINTS):
            self.coding = True
        return self

    def to_content(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "category": self.category,
            "difficulty": self.difficulty,
            "questionFormat": self.question_format or DEFAULT_QUESTION_FORMAT,
            "coding": self.coding,
        }


# Request bodies

class DislikeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    reason: Optional[str] = None
    user_feedback: Optional[str] = Field(default=None, alias="userFeedback")


class QuestionFeedback(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    question_id: str = Field(alias="questionId")
    feedback: str


class FeedbackRegenerationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    feedback: List[QuestionFeedback] = Field(default_factory=list)
    global_feedback: Optional[str] = Field(default=None, alias="globalFeedback")


class SkillRegenerationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    skill_id: Optional[str] = Field(default=None, alias="skillId")
    feedback: Optional[str] = None
