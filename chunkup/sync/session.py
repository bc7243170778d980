"""Upload session record"""

from dataclasses import dataclass
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Upload session states"""
    INIT = "init"
    RESOLVING = "resolving"
    NEGOTIATING = "negotiating"
    UPLOADING = "uploading"
    PAUSED = "paused"
    MERGING = "merging"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.COMPLETE, SessionState.FAILED})


@dataclass
class UploadSession:
    """
    Mutable state of one upload
    Owned by the uploader and handed by reference to every component
    """
    size: int
    chunk_size: int
    max_concurrency: int
    max_load_chunks: int
    identifier: str = ""
    state: SessionState = SessionState.INIT
    generation: int = 0

    @property
    def total_chunks(self) -> int:
        return -(-self.size // self.chunk_size)

    @property
    def is_uploading(self) -> bool:
        return self.state == SessionState.UPLOADING

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, state: SessionState):
        if state != self.state:
            logger.info(f"Session {self.identifier or '<unresolved>'}: "
                        f"{self.state.value} -> {state.value}")
            self.state = state

    def reset(self):
        """Back to INIT; bumping generation invalidates callbacks of the previous run"""
        self.identifier = ""
        self.state = SessionState.INIT
        self.generation += 1
