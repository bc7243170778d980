"""Upload error hierarchy"""

from typing import Optional


class UploadError(Exception):
    """Base class for every failure reported by the uploader"""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class ConfigError(UploadError):
    """Invalid or incomplete uploader configuration"""


class ChunkReadError(UploadError):
    """Reading a chunk or a hashing slice from disk failed"""


class NegotiationError(UploadError):
    """The verify request failed"""


class ChunkUploadError(UploadError):
    """A chunk upload request failed"""


class MergeError(UploadError):
    """The merge request failed"""
