"""
Self-contained datastore mutations.

A mutation targets rows by primary key only, so any chunk of them can be
committed on its own without depending on rows written by another chunk.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple, Type, Union

from sqlmodel import Session, SQLModel

from skillsync.models import Question, Regeneration, Skill, utcnow

KIND_NAMES = {
    Skill: "skills",
    Question: "questions",
    Regeneration: "regenerations",
}


def kind_of(model: Type[SQLModel]) -> str:
    return KIND_NAMES.get(model, model.__tablename__)


@dataclass
class Patch:
    """Set `changes` on the row of `model` with primary key `entity_id`."""
    model: Type[SQLModel]
    entity_id: str
    changes: Dict[str, Any]
    tags: Tuple[str, ...] = ("updated",)

    @property
    def kind(self) -> str:
        return kind_of(self.model)

    def apply(self, session: Session) -> None:
        row = session.get(self.model, self.entity_id)
        if row is None:
            raise LookupError(f"{self.model.__name__} {self.entity_id} does not exist")
        for name, value in self.changes.items():
            setattr(row, name, value)
        if hasattr(row, "updated_at"):
            row.updated_at = utcnow()
        session.add(row)


@dataclass
class Insert:
    """Add a new row. The instance carries its own pre-generated id."""
    instance: SQLModel
    tags: Tuple[str, ...] = ("created",)

    @property
    def kind(self) -> str:
        return kind_of(type(self.instance))

    def apply(self, session: Session) -> None:
        session.add(self.instance)
        # Keep insert order so audit rows land after the rows they reference
        session.flush()


Mutation = Union[Patch, Insert]


def count_tags(mutations: Iterable[Mutation]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for mutation in mutations:
        for tag in mutation.tags:
            counts[mutation.kind][tag] += 1
    return {kind: dict(tags) for kind, tags in counts.items()}


@dataclass
class MutationSet:
    """Output of reconciliation: skill patches first, then question patches."""
    skills: List[Patch] = field(default_factory=list)
    questions: List[Patch] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.skills) + len(self.questions)

    def __bool__(self) -> bool:
        return len(self) > 0

    def all(self) -> List[Patch]:
        return [*self.skills, *self.questions]

    def summary(self) -> Dict[str, Dict[str, int]]:
        return sync_summary(count_tags(self.all()))


def sync_summary(counts: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
    """Shape tag counts as the sync response expects, zero-filled."""
    skills = counts.get("skills", {})
    questions = counts.get("questions", {})
    return {
        "skills": {
            "undeleted": skills.get("undeleted", 0),
            "deleted": skills.get("deleted", 0),
            "updated": skills.get("updated", 0),
        },
        "questions": {
            "undeleted": questions.get("undeleted", 0),
            "deleted": questions.get("deleted", 0),
            "poolSet": questions.get("poolSet", 0),
        },
    }
