"""Resumable chunked file upload client"""

from .config import UploaderConfig, load_config
from .client.client import ChunkedUploader
from .exceptions import (
    UploadError,
    ConfigError,
    ChunkReadError,
    NegotiationError,
    ChunkUploadError,
    MergeError,
)
from .sync.session import SessionState

__version__ = "1.0.0"

__all__ = [
    'ChunkedUploader',
    'UploaderConfig',
    'load_config',
    'SessionState',
    'UploadError',
    'ConfigError',
    'ChunkReadError',
    'NegotiationError',
    'ChunkUploadError',
    'MergeError',
]
