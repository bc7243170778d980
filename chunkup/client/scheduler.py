"""Concurrency-limited chunk dispatch"""

import asyncio
from functools import partial
from typing import Awaitable, Callable, Dict, List
import logging

from ..exceptions import ChunkUploadError, UploadError
from ..network.chunks import ChunkIndex
from ..sync.progress import ProgressEstimator, ProgressSnapshot
from ..sync.session import UploadSession
from .readahead import LoadedChunk, ReadAheadBuffer

logger = logging.getLogger(__name__)

SendChunk = Callable[[int, bytes], Awaitable[None]]


class UploadScheduler:
    """
    Moves loaded chunks to the network, at most max_concurrency at a time
    Every completion refills the buffer and dispatches again; this chain is the only driving loop
    """

    def __init__(self, session: UploadSession, chunks: ChunkIndex, buffer: ReadAheadBuffer,
                 progress: ProgressEstimator, send: SendChunk,
                 on_progress: Callable[[ProgressSnapshot], None],
                 on_error: Callable[[UploadError], None],
                 on_done: Callable[[], None],
                 max_retries: int = 0):
        self.session = session
        self.chunks = chunks
        self.buffer = buffer
        self.progress = progress
        self.send = send
        self.on_progress = on_progress
        self.on_error = on_error
        self.on_done = on_done
        self.max_retries = max_retries

        self.active: Dict[int, asyncio.Task] = {}

    def dispatch(self):
        """Start uploads until the queue is empty or every slot is taken"""
        while (self.session.is_uploading and len(self.buffer)
               and len(self.active) < self.session.max_concurrency):
            chunk = self.buffer.pop()

            # Resume set may have arrived after this chunk was loaded
            if self.chunks.is_skipped(chunk.index) or chunk.index in self.chunks.confirmed:
                logger.debug(f"Dropping chunk {chunk.index}: already on server")
                continue

            task = asyncio.ensure_future(self._send(chunk))
            self.active[chunk.index] = task
            task.add_done_callback(partial(self._on_sent, chunk))
            logger.debug(f"Uploading chunk {chunk.index} ({len(self.active)} active)")

    async def _send(self, chunk: LoadedChunk):
        attempt = 0
        while True:
            try:
                await self.send(chunk.index, chunk.data)
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(f"Chunk {chunk.index} failed ({e}), "
                               f"retry {attempt}/{self.max_retries}")

    def _on_sent(self, chunk: LoadedChunk, task: asyncio.Task):
        if task.cancelled():
            return

        exc = task.exception()
        # Aborted by pause or cancel
        if self.active.get(chunk.index) is not task:
            return

        if exc is not None:
            # Abandoned in the active map until a pause requeues it
            logger.error(f"Failed to upload chunk {chunk.index}: {exc}")
            error = ChunkUploadError(f"Failed to upload chunk {chunk.index}: {exc}",
                                     index=chunk.index)
            error.__cause__ = exc
            self.on_error(error)
            return

        del self.active[chunk.index]
        self.chunks.mark_confirmed(chunk.index)
        self.on_progress(self.progress.update(chunk.length))

        # A progress listener may have paused or cancelled the session
        if not self.session.is_uploading:
            return

        if self.chunks.is_done():
            logger.info(f"All {self.chunks.chunks_need_send} chunks confirmed")
            self.on_done()
            return

        self.buffer.fill()
        self.dispatch()

    def abort_all(self) -> List[int]:
        """Cancel outstanding uploads and return their indices to Pending"""
        active, self.active = self.active, {}
        for index in sorted(active, reverse=True):
            active[index].cancel()
            self.chunks.requeue(index)

        if active:
            logger.info(f"Aborted {len(active)} uploads: {sorted(active)}")
        return sorted(active)
