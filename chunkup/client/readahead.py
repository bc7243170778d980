"""Memory-bounded chunk read-ahead"""

import asyncio
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Callable, Deque, Dict, Optional, Set
import logging

from ..exceptions import ChunkReadError, UploadError
from ..network.chunks import ChunkIndex
from ..sync.reader import FileReader
from ..sync.session import UploadSession

logger = logging.getLogger(__name__)


@dataclass
class LoadedChunk:
    """Chunk bytes waiting to be sent"""
    index: int
    data: bytes
    length: int


class ReadAheadBuffer:
    """
    Loads Pending chunks from disk ahead of the uploads
    Queued plus in-flight reads never exceed session.max_load_chunks
    """

    def __init__(self, session: UploadSession, chunks: ChunkIndex, reader: FileReader,
                 file_path: str, on_loaded: Callable[[], None],
                 on_error: Callable[[UploadError], None]):
        self.session = session
        self.chunks = chunks
        self.reader = reader
        self.file_path = file_path
        self.on_loaded = on_loaded
        self.on_error = on_error

        self.queue: Deque[LoadedChunk] = deque()
        self.reads: Dict[int, asyncio.Task] = {}
        self.failed: Set[int] = set()

    def __len__(self) -> int:
        return len(self.queue)

    def __contains__(self, index: int) -> bool:
        return any(c.index == index for c in self.queue)

    @property
    def room(self) -> int:
        return self.session.max_load_chunks - len(self.queue) - len(self.reads)

    def fill(self):
        """Start reads for as many Pending chunks as the memory budget allows"""
        # A listener may have paused or cancelled the session mid-callback
        if not self.session.is_uploading:
            return
        room = self.room
        if room <= 0:
            return

        for index in self.chunks.take_next_pending(room):
            info = self.chunks.chunk_info(index)
            task = asyncio.ensure_future(
                self.reader.read(self.file_path, info.offset, info.length)
            )
            self.reads[index] = task
            task.add_done_callback(partial(self._on_read_done, index, info.length))
            logger.debug(f"Reading chunk {index} ({info.length} bytes at {info.offset})")

    def _on_read_done(self, index: int, length: int, task: asyncio.Task):
        if self.reads.get(index) is not task:
            if not task.cancelled():
                task.exception()
            return
        del self.reads[index]

        if task.cancelled():
            self.chunks.requeue(index)
            return

        exc = task.exception()
        if exc is not None:
            self.failed.add(index)
            logger.error(f"Failed to read chunk {index}: {exc}")
            error = ChunkReadError(f"Failed to read chunk {index}: {exc}", index=index)
            error.__cause__ = exc
            self.on_error(error)
            return

        self.push(LoadedChunk(index=index, data=task.result(), length=length))
        self.on_loaded()

    def push(self, chunk: LoadedChunk):
        self.queue.append(chunk)

    def pop(self) -> Optional[LoadedChunk]:
        return self.queue.popleft() if self.queue else None

    def requeue_failed(self):
        """Hand chunks whose read failed back to Pending"""
        for index in sorted(self.failed, reverse=True):
            self.chunks.requeue(index)
        self.failed.clear()

    def reset(self):
        """Drop queued chunks and abandon outstanding reads"""
        reads, self.reads = self.reads, {}
        for task in reads.values():
            task.cancel()
        self.queue.clear()
        self.failed.clear()
