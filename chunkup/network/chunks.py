"""Chunk bookkeeping"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Iterable, List, Set
import logging

logger = logging.getLogger(__name__)


class ChunkStatus(Enum):
    """Chunk lifecycle"""
    PENDING = "pending"
    LOADED = "loaded"
    INFLIGHT = "inflight"
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"


@dataclass
class ChunkInfo:
    """Chunk byte range"""
    index: int
    offset: int
    length: int


class ChunkIndex:
    """
    Tracks which chunks still have to be sent
    Pending indices are kept in file order; Skipped and Confirmed are disjoint from them
    """

    def __init__(self, size: int, chunk_size: int):
        self.size = size
        self.chunk_size = chunk_size
        self.total_chunks = -(-size // chunk_size)
        self.initialize()

    def initialize(self):
        """Mark every chunk Pending"""
        self.pending: Deque[int] = deque(range(self.total_chunks))
        self.skipped: Set[int] = set()
        self.confirmed: Set[int] = set()
        self.chunks_need_send = self.total_chunks
        self.size_need_send = self.size

    def chunk_info(self, index: int) -> ChunkInfo:
        offset = index * self.chunk_size
        return ChunkInfo(index=index, offset=offset, length=self.chunk_length(index))

    def chunk_length(self, index: int) -> int:
        return min(self.size - index * self.chunk_size, self.chunk_size)

    def apply_resume_set(self, confirmed_indices: Iterable[int]):
        """Mark chunks the server already holds as Skipped"""
        for index in confirmed_indices:
            index = int(index)
            if not 0 <= index < self.total_chunks:
                logger.warning(f"Ignoring out of range chunk index from server: {index}")
                continue
            self.skipped.add(index)

        self.pending = deque(i for i in self.pending if i not in self.skipped)
        self.chunks_need_send = self.total_chunks - len(self.skipped)
        self.size_need_send = self.size - sum(self.chunk_length(i) for i in self.skipped)
        logger.debug(f"Resume set applied: {len(self.skipped)} skipped, "
                     f"{self.chunks_need_send} chunks / {self.size_need_send} bytes to send")

    def take_next_pending(self, count: int) -> List[int]:
        """Pop up to count indices in file order"""
        taken = []
        while self.pending and len(taken) < count:
            taken.append(self.pending.popleft())
        return taken

    def clear_pending(self):
        self.pending.clear()

    def requeue(self, index: int):
        """Put an index back at the front of Pending for re-sending"""
        if index in self.confirmed or index in self.skipped or index in self.pending:
            return
        self.pending.appendleft(index)

    def mark_confirmed(self, index: int):
        self.confirmed.add(index)

    def is_skipped(self, index: int) -> bool:
        return index in self.skipped

    def is_done(self) -> bool:
        return len(self.confirmed) >= self.chunks_need_send

