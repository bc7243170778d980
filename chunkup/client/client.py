"""Chunked upload session controller"""

import asyncio
import time
from typing import Callable, Optional
import logging

from ..config import UploaderConfig
from ..exceptions import UploadError
from ..network.chunks import ChunkIndex, ChunkStatus
from ..network.negotiator import ResumeNegotiator
from ..network.protocol import chunk_headers, chunk_url
from ..network.transport import HttpTransport
from ..sync.events import EventEmitter
from ..sync.progress import ProgressEstimator, ProgressSnapshot
from ..sync.reader import FileReader
from ..sync.session import SessionState, UploadSession
from .identifier import IdentifierResolver
from .readahead import ReadAheadBuffer
from .scheduler import UploadScheduler

logger = logging.getLogger(__name__)


class ChunkedUploader:
    """
    Resumable chunked upload of one file
    Drives hash -> verify -> upload -> merge and exposes pause, resume and cancel.
    Listeners receive 'progress', 'complete' and 'error' events.
    """

    def __init__(self, config: UploaderConfig, transport: Optional[HttpTransport] = None,
                 reader: Optional[FileReader] = None,
                 clock: Callable[[], float] = time.monotonic):
        config.validate()
        self.config = config
        self.emitter = EventEmitter()

        self.transport = transport or HttpTransport()
        self.reader = reader or FileReader()
        self.negotiator = ResumeNegotiator(self.transport, config.verify_url, config.merge_url)
        self.resolver = IdentifierResolver(config, self.reader)

        self.session = UploadSession(
            size=config.size,
            chunk_size=config.chunk_size,
            max_concurrency=config.max_concurrency,
            max_load_chunks=config.max_load_chunks
        )
        self.chunks = ChunkIndex(config.size, config.chunk_size)
        self.progress = ProgressEstimator(clock)
        self.buffer = ReadAheadBuffer(
            self.session, self.chunks, self.reader, config.temp_file_path,
            on_loaded=self._on_chunk_loaded,
            on_error=self._report_error
        )
        self.scheduler = UploadScheduler(
            self.session, self.chunks, self.buffer, self.progress,
            send=self._send_chunk,
            on_progress=self._emit_progress,
            on_error=self._report_error,
            on_done=self._on_upload_done,
            max_retries=config.max_retries
        )

        self._start_task: Optional[asyncio.Task] = None
        self._merge_task: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Future] = None
        self._failed_in: Optional[SessionState] = None

        logger.info(f"Uploader for {config.file_name}: {config.size} bytes, "
                    f"{self.chunks.total_chunks} chunks of {config.chunk_size}, "
                    f"concurrency {config.max_concurrency}, read-ahead {config.max_load_chunks}")

    # Events

    def on(self, event: str, listener: Callable):
        self.emitter.on(event, listener)

    def off(self, event: str, listener: Callable):
        self.emitter.off(event, listener)

    def emit(self, event: str, *args):
        self.emitter.emit(event, *args)

    # State

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def identifier(self) -> str:
        return self.session.identifier

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self.progress.snapshot

    def chunk_status(self, index: int) -> ChunkStatus:
        if self.chunks.is_skipped(index):
            return ChunkStatus.SKIPPED
        if index in self.chunks.confirmed:
            return ChunkStatus.CONFIRMED
        if index in self.scheduler.active:
            return ChunkStatus.INFLIGHT
        if index in self.buffer:
            return ChunkStatus.LOADED
        return ChunkStatus.PENDING

    # Lifecycle

    async def upload(self):
        """
        Resolve the identifier, negotiate resume and start sending chunks
        Returns once the pipeline is running; use wait() for the outcome
        """
        if self.session.state != SessionState.INIT:
            raise UploadError(f"upload() called in state {self.session.state.value}")

        loop = asyncio.get_running_loop()
        self._finished = loop.create_future()
        generation = self.session.generation
        self._start_task = asyncio.ensure_future(self._start())

        try:
            await self._start_task
        except asyncio.CancelledError:
            if self.session.generation != generation:
                logger.info("Upload start abandoned by cancel()")
                return
            raise
        finally:
            self._start_task = None

    async def _start(self):
        self.session.transition(SessionState.RESOLVING)
        try:
            if self.config.test_chunks:
                self.session.identifier = await self.resolver.compute_md5(self.chunks, self.buffer)
            else:
                self.session.identifier = self.resolver.generate()
        except UploadError as e:
            self._fail(e)
            return

        if self.config.test_chunks:
            self.session.transition(SessionState.NEGOTIATING)
            try:
                result = await self.negotiator.negotiate(self.session.identifier,
                                                         self.config.file_name)
            except UploadError as e:
                self._fail(e)
                return

            if not result.need_upload:
                logger.info(f"{self.config.file_name} already on server, nothing to upload")
                self._complete()
                return

            self.chunks.apply_resume_set(result.uploaded_chunks)

        self._begin_uploading()

    def _begin_uploading(self):
        self.progress.size_need_send = self.chunks.size_need_send
        self.progress.start_window()
        self.session.transition(SessionState.UPLOADING)

        if self.chunks.is_done():
            self._on_upload_done()
            return

        self.buffer.fill()
        self.scheduler.dispatch()

    def pause(self):
        """Abort in-flight uploads; their chunks go back to Pending"""
        if self.session.state != SessionState.UPLOADING:
            logger.warning(f"pause() ignored in state {self.session.state.value}")
            return

        self.scheduler.abort_all()
        self.session.transition(SessionState.PAUSED)

    def resume(self):
        """Restart the pipeline after pause(), or retry a failed merge"""
        if self.session.state == SessionState.FAILED and self._failed_in == SessionState.MERGING:
            self._failed_in = None
            self._finished = asyncio.get_running_loop().create_future()
            self._on_upload_done()
            return

        if self.session.state != SessionState.PAUSED:
            logger.warning(f"resume() ignored in state {self.session.state.value}")
            return

        self.buffer.requeue_failed()
        self.progress.start_window()
        self.session.transition(SessionState.UPLOADING)

        # Paused between the last confirmation and the merge
        if self.chunks.is_done():
            self._on_upload_done()
            return

        self.buffer.fill()
        self.scheduler.dispatch()

    def cancel(self):
        """Abort everything and return to INIT"""
        if self.session.is_terminal:
            logger.warning(f"cancel() ignored in state {self.session.state.value}")
            return

        logger.info(f"Cancelling upload of {self.config.file_name}")
        self.scheduler.abort_all()
        for task in (self._start_task, self._merge_task):
            if task is not None and not task.done():
                task.cancel()
        self._merge_task = None

        finished = self._finished
        self._reset()
        if finished is not None and not finished.done():
            finished.set_result(SessionState.INIT)

    def _reset(self):
        self.buffer.reset()
        self.chunks.initialize()
        self.session.reset()
        self.progress.reset()
        self._failed_in = None
        self._finished = None
        self._emit_progress(self.progress.snapshot)

    async def wait(self) -> SessionState:
        """Wait for COMPLETE or FAILED; INIT if the upload was cancelled"""
        if self._finished is None:
            return self.session.state
        return await asyncio.shield(self._finished)

    async def close(self):
        await self.transport.close()

    # Pipeline callbacks

    async def _send_chunk(self, index: int, data: bytes):
        url = chunk_url(self.config.upload_url, self.session.identifier, index, self.config.query)
        await self.transport.post_bytes(url, data, chunk_headers(self.config.header))

    def _on_chunk_loaded(self):
        self.scheduler.dispatch()

    def _on_upload_done(self):
        if self.session.state not in (SessionState.UPLOADING, SessionState.FAILED):
            return
        self.session.transition(SessionState.MERGING)
        self._merge_task = asyncio.ensure_future(self._merge())

    async def _merge(self):
        try:
            await self.negotiator.merge(self.session.identifier, self.config.file_name)
        except UploadError as e:
            self._fail(e)
            return
        finally:
            self._merge_task = None
        self._complete()

    def _emit_progress(self, snapshot: ProgressSnapshot):
        self.emit('progress', snapshot.to_event())

    def _report_error(self, error: UploadError):
        self.emit('error', error)

    def _complete(self):
        self.session.transition(SessionState.COMPLETE)
        self.emit('complete')
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(SessionState.COMPLETE)

    def _fail(self, error: UploadError):
        logger.error(f"Upload of {self.config.file_name} failed: {error}", exc_info=error)
        self._failed_in = self.session.state
        self.session.transition(SessionState.FAILED)
        self._report_error(error)
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(SessionState.FAILED)
