import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from sqlmodel import Session

from skillsync.constants import SYNC_CHUNK_SIZE
from skillsync.errors import ChunkApplyError
from skillsync.mutations import Mutation, count_tags

logger = logging.getLogger(__name__)


def chunked(items: Sequence[Mutation], size: int) -> Iterator[Sequence[Mutation]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def merge_counts(total: Dict[str, Dict[str, int]], counts: Dict[str, Dict[str, int]]) -> None:
    for kind, tags in counts.items():
        bucket = total.setdefault(kind, {})
        for tag, value in tags.items():
            bucket[tag] = bucket.get(tag, 0) + value


@dataclass
class ApplyResult:
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    chunk_sizes: List[int] = field(default_factory=list)

    @property
    def transactions(self) -> int:
        return len(self.chunk_sizes)


class BatchApplier:
    """
    Commits mutations in consecutive chunks, one transaction per chunk.

    A failing chunk is rolled back on its own; earlier chunks stay committed
    and later chunks are never attempted. Callers re-run the whole operation
    to converge, which is safe because reconciliation is idempotent.
    """

    def __init__(self, chunk_size: int = SYNC_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.chunk_size = chunk_size

    def apply(self, session: Session, mutations: Sequence[Mutation], chunk_size: Optional[int] = None) -> ApplyResult:
        """
        Args:
            session (Session): Session used for every chunk; must hold no pending changes.
            mutations (Sequence[Mutation]): Patches and inserts, applied in order.
            chunk_size (Optional[int]): Overrides the applier's chunk size for this call.
        Returns:
            ApplyResult: Committed counts per entity kind and the size of each transaction.
        Raises:
            ChunkApplyError: A chunk failed; carries its 1-based index and the counts committed before it.
        """
        size = chunk_size or self.chunk_size
        result = ApplyResult()

        for index, chunk in enumerate(chunked(list(mutations), size), start=1):
            try:
                for mutation in chunk:
                    mutation.apply(session)
                session.commit()
            except Exception as e:
                session.rollback()
                logger.exception("Chunk %d of %d mutations failed", index, len(chunk))
                raise ChunkApplyError(index, result.counts, e) from e

            merge_counts(result.counts, count_tags(chunk))
            result.chunk_sizes.append(len(chunk))
            logger.debug("Committed chunk %d (%d mutations)", index, len(chunk))

        return result
