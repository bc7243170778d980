from .client import ChunkedUploader
from .identifier import IdentifierResolver
from .readahead import ReadAheadBuffer, LoadedChunk
from .scheduler import UploadScheduler

__all__ = [
    'ChunkedUploader',
    'IdentifierResolver',
    'ReadAheadBuffer',
    'LoadedChunk',
    'UploadScheduler'
]
