from .session import UploadSession, SessionState, TERMINAL_STATES
from .progress import ProgressEstimator, ProgressSnapshot
from .events import EventEmitter
from .reader import FileReader

__all__ = [
    'UploadSession',
    'SessionState',
    'TERMINAL_STATES',
    'ProgressEstimator',
    'ProgressSnapshot',
    'EventEmitter',
    'FileReader'
]
