"""
Tests for the regeneration versioning engine with a fake generator.
"""

import pytest
from sqlmodel import select

from conftest import FakeGenerator, all_regenerations, question_json
from skillsync.constants import DISLIKE_REASON, FEEDBACK_REASON, SKILL_REGENERATION_REASON
from skillsync.errors import GeneratorError, InputValidationError, MalformedOutputError, NotFoundError
from skillsync.models import LikeStatus, Question, Requirement
from skillsync.schemas import QuestionFeedback
from skillsync.services.regeneration import RegenerationEngine, RegenerationStrategy


def active_questions(session, skill):
    return list(session.exec(select(Question).where(Question.skill_id == skill.id, Question.deleted == False)).all())  # noqa: E712


@pytest.fixture
def skill(make_record, make_skill):
    return make_skill(make_record(), name="Docker", difficulty="Medium")


# --- single question ------------------------------------------------------

@pytest.mark.asyncio
async def test_in_place_regeneration_overwrites_content_and_resets_state(session, skill, make_question):
    question = make_question(skill, liked=LikeStatus.DISLIKED, feedback="too vague")
    generator = FakeGenerator(question_json("How do Docker layers cache?"))
    engine = RegenerationEngine(generator, strategy="in_place")

    outcome = await engine.regenerate_question(session, question.id, reason="Too easy", user_feedback="ask about caching")

    session.refresh(question)
    assert question.content["question"] == "How do Docker layers cache?"
    assert question.liked == LikeStatus.NONE
    assert question.feedback is None
    assert question.deleted is False

    regenerations = all_regenerations(session)
    assert len(regenerations) == 1
    assert regenerations[0].original_question_id == question.id
    assert regenerations[0].new_question_id == question.id
    assert regenerations[0].reason == "Too easy"
    assert regenerations[0].user_feedback == "ask about caching"
    assert outcome.regenerated == 1
    assert outcome.questions[0].id == question.id


@pytest.mark.asyncio
async def test_replace_regeneration_retires_old_and_creates_new(session, skill, make_question):
    question = make_question(skill, flo_career_id=900, flo_career_pool_id=10, feedback="meh")
    engine = RegenerationEngine(FakeGenerator({"question": question_json("Explain multi-stage builds")}))

    outcome = await engine.regenerate_question(session, question.id, user_feedback="more depth")

    session.refresh(question)
    assert question.deleted is True
    assert question.deleted_feedback == "more depth"

    new = outcome.questions[0]
    assert new.id != question.id
    assert new.skill_id == skill.id
    assert new.record_id == skill.record_id
    assert new.content["question"] == "Explain multi-stage builds"
    assert new.liked == LikeStatus.NONE
    assert new.feedback is None
    assert new.flo_career_id is None
    assert new.flo_career_pool_id is None

    (regeneration,) = all_regenerations(session)
    assert (regeneration.original_question_id, regeneration.new_question_id) == (question.id, new.id)
    assert regeneration.reason == DISLIKE_REASON
    assert regeneration.user_feedback == "more depth"


@pytest.mark.asyncio
async def test_dislike_prompt_carries_reason_and_stored_feedback(session, skill, make_question):
    question = make_question(skill, text="What is Docker?", feedback="too basic")
    generator = FakeGenerator(question_json("New"))

    await RegenerationEngine(generator).regenerate_question(session, question.id, reason="Not relevant")

    prompt = generator.calls[0]["prompt"]
    assert "Original question: What is Docker?" in prompt
    assert 'Reason for regeneration: "Not relevant"' in prompt
    assert "too basic" in prompt
    assert "Difficulty level: Medium" in prompt


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", list(RegenerationStrategy))
async def test_malformed_output_writes_nothing(session, skill, make_question, strategy):
    question = make_question(skill, liked=LikeStatus.DISLIKED)
    engine = RegenerationEngine(FakeGenerator('{"foo": "bar"}'), strategy=strategy)

    with pytest.raises(MalformedOutputError):
        await engine.regenerate_question(session, question.id)

    session.refresh(question)
    assert question.deleted is False
    assert question.liked == LikeStatus.DISLIKED
    assert all_regenerations(session) == []
    assert len(active_questions(session, skill)) == 1


@pytest.mark.asyncio
async def test_generator_failure_propagates_without_writes(session, skill, make_question):
    question = make_question(skill)
    engine = RegenerationEngine(FakeGenerator(GeneratorError("No content returned from OpenAI")))

    with pytest.raises(GeneratorError):
        await engine.regenerate_question(session, question.id)

    assert all_regenerations(session) == []


@pytest.mark.asyncio
async def test_unknown_or_deleted_question_is_not_found(session, skill, make_question):
    deleted = make_question(skill, deleted=True)
    engine = RegenerationEngine(FakeGenerator())

    with pytest.raises(NotFoundError):
        await engine.regenerate_question(session, "nope")
    with pytest.raises(NotFoundError):
        await engine.regenerate_question(session, deleted.id)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError):
        RegenerationEngine(FakeGenerator(), strategy="sometimes")


# --- skill scoped ---------------------------------------------------------

@pytest.mark.asyncio
async def test_skill_regeneration_replaces_every_question(session, skill, make_question):
    old = [make_question(skill, text=f"Old {i}") for i in range(3)]
    generator = FakeGenerator({"questions": [question_json(f"New {i}") for i in range(3)]})
    engine = RegenerationEngine(generator)

    outcome = await engine.regenerate_skill(session, skill.record_id, skill.id, feedback="harder please")

    assert outcome.regenerated == 3
    assert outcome.shortfall == 0

    active = active_questions(session, skill)
    assert sorted(q.content["question"] for q in active) == ["New 0", "New 1", "New 2"]

    for question in old:
        session.refresh(question)
        assert question.deleted is True
        assert question.deleted_feedback == "harder please"

    regenerations = all_regenerations(session)
    assert len(regenerations) == 3
    assert {r.original_question_id for r in regenerations} == {q.id for q in old}
    assert {r.new_question_id for r in regenerations} == {q.id for q in active}
    assert {r.reason for r in regenerations} == {SKILL_REGENERATION_REASON}
    assert {r.user_feedback for r in regenerations} == {"harder please"}
    assert "Please generate exactly 3" in generator.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_skill_regeneration_shortfall_is_reported(session, skill, make_question):
    old = [make_question(skill, text=f"Old {i}") for i in range(3)]
    engine = RegenerationEngine(FakeGenerator([question_json("New 0"), question_json("New 1")]))

    outcome = await engine.regenerate_skill(session, skill.record_id, skill.id)

    assert outcome.requested == 3
    assert outcome.regenerated == 2
    assert outcome.shortfall == 1
    assert any("regenerated 2 of 3" in w for w in outcome.warnings)

    states = []
    for question in old:
        session.refresh(question)
        states.append(question.deleted)
    assert states == [True, True, False]
    assert len(all_regenerations(session)) == 2
    assert all(r.reason == SKILL_REGENERATION_REASON and r.user_feedback is None for r in all_regenerations(session))


@pytest.mark.asyncio
async def test_skill_regeneration_keeps_coding_questions_coding(session, skill, make_question):
    make_question(skill, text="Write a Dockerfile", coding=True)
    generator = FakeGenerator([question_json("Fix this compose file", questionFormat="Coding")])

    outcome = await RegenerationEngine(generator).regenerate_skill(session, skill.record_id, skill.id)

    assert 'MUST use the "Coding" format' in generator.calls[0]["prompt"]
    assert outcome.questions[0].coding is True


@pytest.mark.asyncio
async def test_skill_regeneration_validates_input(session, skill, make_record):
    engine = RegenerationEngine(FakeGenerator())

    with pytest.raises(InputValidationError):
        await engine.regenerate_skill(session, skill.record_id, None)
    with pytest.raises(NotFoundError):
        await engine.regenerate_skill(session, make_record().id, skill.id)
    with pytest.raises(NotFoundError, match="No questions"):
        await engine.regenerate_skill(session, skill.record_id, skill.id)


# --- record wide with feedback --------------------------------------------

@pytest.mark.asyncio
async def test_feedback_regeneration_targets_only_questions_with_feedback(session, skill, make_question):
    first = make_question(skill, text="Q1")
    second = make_question(skill, text="Q2")
    generator = FakeGenerator([question_json("Better Q1")])
    engine = RegenerationEngine(generator)

    outcome = await engine.regenerate_with_feedback(
        session, skill.record_id, [QuestionFeedback(questionId=first.id, feedback="needs an example")]
    )

    assert outcome.regenerated == 1
    session.refresh(first)
    session.refresh(second)
    assert first.deleted is True
    assert second.deleted is False

    (regeneration,) = all_regenerations(session)
    assert regeneration.original_question_id == first.id
    assert regeneration.reason == FEEDBACK_REASON
    assert regeneration.user_feedback == "needs an example"
    assert "Feedback: needs an example" in generator.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_global_feedback_targets_every_question_of_eligible_skills(session, make_record, make_skill, make_question):
    record = make_record()
    mandatory = make_skill(record, name="Go")
    optional_asked = make_skill(record, name="Rust", requirement=Requirement.OPTIONAL, num_questions=1)
    optional_skipped = make_skill(record, name="Zig", requirement=Requirement.OPTIONAL, num_questions=0)
    for s in (mandatory, optional_asked, optional_skipped):
        make_question(s, text=f"{s.name} question")
    generator = FakeGenerator([question_json("New Go")], [question_json("New Rust")])

    outcome = await RegenerationEngine(generator, strategy="in_place").regenerate_with_feedback(
        session, record.id, [], global_feedback="make them scenario based"
    )

    assert outcome.regenerated == 2
    assert len(generator.calls) == 2
    assert all("GLOBAL FEEDBACK FOR ALL QUESTIONS: make them scenario based" in c["prompt"] for c in generator.calls)
    assert {r.user_feedback for r in all_regenerations(session)} == {"make them scenario based"}


@pytest.mark.asyncio
async def test_feedback_regeneration_continues_past_failing_skill(session, make_record, make_skill, make_question):
    record = make_record()
    broken = make_skill(record, name="Broken")
    working = make_skill(record, name="Working")
    broken_question = make_question(broken)
    make_question(working)
    generator = FakeGenerator("garbage", [question_json("Fine")])

    outcome = await RegenerationEngine(generator).regenerate_with_feedback(session, record.id, global_feedback="again")

    assert outcome.regenerated == 1
    assert outcome.requested == 2
    assert outcome.failed_skills == ["Broken"]
    session.refresh(broken_question)
    assert broken_question.deleted is False


@pytest.mark.asyncio
async def test_feedback_regeneration_fails_when_nothing_was_regenerated(session, skill, make_question):
    make_question(skill)

    with pytest.raises(GeneratorError):
        await RegenerationEngine(FakeGenerator("[]")).regenerate_with_feedback(session, skill.record_id, global_feedback="x")

    assert all_regenerations(session) == []


@pytest.mark.asyncio
async def test_feedback_regeneration_requires_feedback(session, skill):
    engine = RegenerationEngine(FakeGenerator())

    with pytest.raises(InputValidationError):
        await engine.regenerate_with_feedback(session, skill.record_id, [], global_feedback="   ")
    with pytest.raises(InputValidationError):
        await engine.regenerate_with_feedback(session, skill.record_id, [QuestionFeedback(questionId="q", feedback=" ")])


@pytest.mark.asyncio
async def test_feedback_regeneration_unknown_record(session):
    with pytest.raises(NotFoundError):
        await RegenerationEngine(FakeGenerator()).regenerate_with_feedback(session, "missing", global_feedback="x")
