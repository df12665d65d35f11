import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from sqlmodel import Session, select

from skillsync.analysis.response_validator import ParsedQuestions, parse_generated_questions
from skillsync.constants import (
    DISLIKE_REASON,
    FEEDBACK_REASON,
    REGENERATION_STRATEGY,
    SKILL_REGENERATION_REASON,
)
from skillsync.errors import GeneratorError, InputValidationError, MalformedOutputError, NotFoundError
from skillsync.models import LikeStatus, Question, Regeneration, Requirement, Skill, SkillRecord
from skillsync.mutations import Insert, Mutation, Patch
from skillsync.prompts import (
    BATCH_SYSTEM_PROMPT,
    SINGLE_QUESTION_SYSTEM_PROMPT,
    build_dislike_prompt,
    build_feedback_prompt,
)
from skillsync.schemas import GeneratedQuestion, QuestionFeedback
from skillsync.services.batch_applier import BatchApplier
from skillsync.services.llm_client import QuestionGenerator

logger = logging.getLogger(__name__)

# (question being replaced, feedback that triggered it)
Target = Tuple[Question, Optional[str]]


class RegenerationStrategy(str, Enum):
    REPLACE = "replace"
    IN_PLACE = "in_place"


@dataclass
class RegenerationOutcome:
    requested: int = 0
    questions: List[Question] = field(default_factory=list)
    regenerations: List[Regeneration] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failed_skills: List[str] = field(default_factory=list)

    @property
    def regenerated(self) -> int:
        return len(self.regenerations)

    @property
    def shortfall(self) -> int:
        return self.requested - self.regenerated

    def extend(self, other: "RegenerationOutcome") -> None:
        self.requested += other.requested
        self.questions.extend(other.questions)
        self.regenerations.extend(other.regenerations)
        self.warnings.extend(other.warnings)
        self.failed_skills.extend(other.failed_skills)


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def _is_coding(question: Question) -> bool:
    content = question.content or {}
    return (
        question.coding
        or content.get("coding") is True
        or str(content.get("questionFormat") or "").lower() == "coding"
    )


class RegenerationEngine:
    """
    Replaces question content with freshly generated content and records
    every replacement in the append-only `regeneration` table.

    One strategy is used for every entry point:
      - replace: retire the old question (soft delete) and create a new one
      - in_place: overwrite the old question's content
    Generation happens before any write, so a failed or unusable generator
    response leaves the datastore untouched.
    A retired question that still exists on FloCareer is un-deleted by the
    next sync, so replace keeps both it and its replacement active.
    """

    def __init__(
        self,
        generator: QuestionGenerator,
        applier: Optional[BatchApplier] = None,
        strategy: Union[str, RegenerationStrategy] = REGENERATION_STRATEGY,
    ):
        self.generator = generator
        self.applier = applier or BatchApplier()
        self.strategy = RegenerationStrategy(strategy)

    async def _generate(self, system_prompt: str, prompt: str, expected: int) -> ParsedQuestions:
        logger.debug("Generator prompt:\n%s", prompt)
        raw = await self.generator.complete(system_prompt, prompt)
        try:
            return parse_generated_questions(raw, expected)
        except MalformedOutputError:
            logger.error("Unusable generator output: %.500s", raw)
            raise

    def build_mutations(
        self,
        targets: Sequence[Target],
        replacements: Sequence[GeneratedQuestion],
        reason: str,
    ) -> Tuple[List[Mutation], List[Question], List[Regeneration]]:
        """
        Pairs targets with replacements in order; extra targets are left alone.

        Returns:
            Tuple: mutations to commit atomically, the resulting questions and the audit rows.
        """
        pairs = list(zip(targets, replacements))
        mutations: List[Mutation] = []
        results: List[Question] = []
        audits: List[Regeneration] = []

        if self.strategy is RegenerationStrategy.REPLACE:
            for (old, feedback), _ in pairs:
                mutations.append(
                    Patch(Question, old.id, {"deleted": True, "deleted_feedback": feedback or reason}, ("retired",))
                )

        for (old, feedback), generated in pairs:
            content = generated.to_content()
            if self.strategy is RegenerationStrategy.REPLACE:
                new = Question(
                    content=content,
                    coding=generated.coding,
                    liked=LikeStatus.NONE,
                    feedback=None,
                    skill_id=old.skill_id,
                    record_id=old.record_id,
                )
                mutations.append(Insert(new, ("created",)))
                new_id = new.id
                results.append(new)
            else:
                mutations.append(
                    Patch(
                        Question,
                        old.id,
                        {"content": content, "coding": generated.coding, "liked": LikeStatus.NONE, "feedback": None},
                        ("regenerated",),
                    )
                )
                new_id = old.id
                results.append(old)

            audit = Regeneration(
                original_question_id=old.id,
                new_question_id=new_id,
                reason=reason,
                user_feedback=feedback,
                skill_id=old.skill_id,
                record_id=old.record_id,
            )
            mutations.append(Insert(audit, ("recorded",)))
            audits.append(audit)

        return mutations, results, audits

    def _commit(self, session: Session, targets: Sequence[Target], parsed: ParsedQuestions, reason: str) -> RegenerationOutcome:
        mutations, results, audits = self.build_mutations(targets, parsed.questions, reason)
        # One transaction for the whole batch
        self.applier.apply(session, mutations, chunk_size=max(len(mutations), 1))
        for question in results:
            session.refresh(question)
        return RegenerationOutcome(
            requested=len(targets),
            questions=results,
            regenerations=audits,
            warnings=list(parsed.warnings),
        )

    async def regenerate_question(
        self,
        session: Session,
        question_id: str,
        reason: Optional[str] = None,
        user_feedback: Optional[str] = None,
    ) -> RegenerationOutcome:
        """
        Regenerates one disliked question.

        Args:
            session (Session): Database session.
            question_id (str): Question to replace.
            reason (Optional[str]): Why it was disliked; stored on the audit row.
            user_feedback (Optional[str]): Free-text feedback; stored on the audit row.
        Returns:
            RegenerationOutcome: The resulting question and its audit row.
        """
        if not question_id:
            raise InputValidationError("Question ID is required")
        question = session.get(Question, question_id)
        if question is None or question.deleted:
            raise NotFoundError("Question not found")

        skill = question.skill
        prompt = build_dislike_prompt(
            skill.name,
            _value(skill.level),
            (question.content or {}).get("question", ""),
            reason=reason,
            feedback=question.feedback or user_feedback,
            difficulty=skill.difficulty,
        )
        parsed = await self._generate(SINGLE_QUESTION_SYSTEM_PROMPT, prompt, 1)
        outcome = self._commit(session, [(question, user_feedback)], parsed, reason or DISLIKE_REASON)
        logger.info("Regenerated question %s (%s)", question_id, self.strategy.value)
        return outcome

    async def _regenerate_batch(
        self,
        session: Session,
        skill: Skill,
        targets: Sequence[Target],
        reason: str,
        global_feedback: Optional[str] = None,
    ) -> RegenerationOutcome:
        active = session.exec(
            select(Question).where(Question.skill_id == skill.id, Question.deleted == False)  # noqa: E712
        ).all()
        prompt = build_feedback_prompt(
            skill.name,
            _value(skill.level),
            [((q.content or {}).get("question", ""), feedback) for q, feedback in targets],
            global_feedback=global_feedback,
            difficulty=skill.difficulty,
            category=skill.category,
            coding_only=any(_is_coding(q) for q, _ in targets),
            avoid=[(q.content or {}).get("question", "") for q in active],
        )
        parsed = await self._generate(BATCH_SYSTEM_PROMPT, prompt, len(targets))
        outcome = self._commit(session, targets, parsed, reason)
        if outcome.shortfall:
            outcome.warnings.append(
                f"Skill {skill.name}: regenerated {outcome.regenerated} of {outcome.requested} questions"
            )
        return outcome

    async def regenerate_with_feedback(
        self,
        session: Session,
        record_id: str,
        feedback: Sequence[QuestionFeedback] = (),
        global_feedback: Optional[str] = None,
    ) -> RegenerationOutcome:
        """
        Regenerates the questions of a record that received feedback.

        Questions named in `feedback` are targeted; with `global_feedback`
        every active question of an eligible skill is targeted. Each skill is
        generated and committed on its own, so one failing skill does not
        undo the others.
        """
        global_feedback = (global_feedback or "").strip() or None
        feedback_map: Dict[str, str] = {
            item.question_id: item.feedback.strip() for item in feedback if item.feedback and item.feedback.strip()
        }
        if not feedback_map and not global_feedback:
            raise InputValidationError("Feedback is required")

        record = session.get(SkillRecord, record_id)
        if record is None:
            raise NotFoundError("Record not found")

        outcome = RegenerationOutcome()
        known_ids = set()
        for skill in record.skills:
            if skill.deleted:
                continue
            if skill.requirement != Requirement.MANDATORY and not skill.num_questions:
                continue

            targets: List[Target] = []
            for question in skill.questions:
                if question.deleted or question.record_id != record.id:
                    continue
                known_ids.add(question.id)
                if question.id in feedback_map or global_feedback:
                    targets.append((question, feedback_map.get(question.id) or global_feedback))
            if not targets:
                continue

            try:
                outcome.extend(await self._regenerate_batch(session, skill, targets, FEEDBACK_REASON, global_feedback))
            except GeneratorError as e:
                logger.error("Error regenerating questions for skill %s: %s", skill.name, e)
                outcome.requested += len(targets)
                outcome.failed_skills.append(skill.name)

        unknown = sorted(set(feedback_map) - known_ids)
        if unknown:
            outcome.warnings.append(f"Ignored feedback for unknown or inactive questions: {', '.join(unknown)}")

        if outcome.requested == 0:
            raise NotFoundError("No questions to regenerate")
        if outcome.regenerated == 0 and outcome.failed_skills:
            raise GeneratorError(f"Failed to regenerate questions for: {', '.join(outcome.failed_skills)}")

        logger.info("Regenerated %d of %d questions for record %s", outcome.regenerated, outcome.requested, record_id)
        return outcome

    async def regenerate_skill(
        self,
        session: Session,
        record_id: str,
        skill_id: Optional[str],
        feedback: Optional[str] = None,
    ) -> RegenerationOutcome:
        """Regenerates every active question of one skill."""
        if not record_id or not skill_id:
            raise InputValidationError("Record ID and Skill ID are required")

        skill = session.get(Skill, skill_id)
        if skill is None or skill.record_id != record_id:
            raise NotFoundError("Skill not found")

        feedback = (feedback or "").strip() or None
        targets: List[Target] = [(q, feedback) for q in skill.questions if not q.deleted]
        if not targets:
            raise NotFoundError("No questions found for this skill")

        logger.info("Regenerating %d questions for skill %s", len(targets), skill.name)
        return await self._regenerate_batch(session, skill, targets, SKILL_REGENERATION_REASON, feedback)
