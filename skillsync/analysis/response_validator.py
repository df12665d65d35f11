import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Union

from pydantic import ValidationError

from skillsync.errors import MalformedOutputError
from skillsync.schemas import GeneratedQuestion

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class ParsedQuestions:
    questions: List[GeneratedQuestion]
    expected: int
    received: int
    warnings: List[str] = field(default_factory=list)

    @property
    def shortfall(self) -> int:
        return max(0, self.expected - len(self.questions))


def _decode(raw: Union[str, bytes, Any]) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    if not text:
        raise MalformedOutputError("Malformed generator output: empty response")
    fenced = FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Malformed generator output: {e}") from e


def _is_question_shaped(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("question"), str) and bool(item["question"].strip())


def _candidates(payload: Any, collection_key: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        collection = payload.get(collection_key)
        if isinstance(collection, list):
            return collection
        if _is_question_shaped(collection):
            return [collection]
        # {"question": {...}} as returned for single-question prompts
        if _is_question_shaped(payload.get("question")):
            return [payload["question"]]
        if _is_question_shaped(payload):
            return [payload]
    raise MalformedOutputError("Malformed generator output: no question content found")


def parse_generated_questions(raw: Any, expected_count: int, collection_key: str = "questions") -> ParsedQuestions:
    """
    Reads generator output into question objects.

    Accepts a bare array, an object holding the array under `collection_key`,
    or a single question object. A count different from `expected_count`
    is a warning, not an error; at most `expected_count` items are kept.

    Args:
        raw (Any): Raw completion text, or an already decoded payload.
        expected_count (int): Number of questions the prompt asked for.
        collection_key (str): Property name the array may be wrapped in.
    Returns:
        ParsedQuestions: The usable questions plus any warnings.
    Raises:
        MalformedOutputError: When no question-shaped content is present.
    """
    payload = _decode(raw)
    candidates = _candidates(payload, collection_key)

    questions: List[GeneratedQuestion] = []
    warnings: List[str] = []
    for index, item in enumerate(candidates):
        if not _is_question_shaped(item):
            warnings.append(f"Dropped item {index}: not a question object")
            continue
        try:
            questions.append(GeneratedQuestion.model_validate(item))
        except ValidationError as e:
            warnings.append(f"Dropped item {index}: {e.error_count()} validation error(s)")

    if not questions:
        raise MalformedOutputError("Malformed generator output: no usable questions")

    received = len(questions)
    if received != expected_count:
        message = f"Expected {expected_count} questions but got {received}"
        logger.warning(message)
        warnings.append(message)

    return ParsedQuestions(
        questions=questions[:max(expected_count, 0)],
        expected=expected_count,
        received=received,
        warnings=warnings,
    )
