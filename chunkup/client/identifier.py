"""Session identifier resolution"""

import hashlib
import random
import time
from typing import Optional
import logging

from ..config import MB, UploaderConfig
from ..exceptions import ChunkReadError, UploadError
from ..network.chunks import ChunkIndex
from ..sync.reader import FileReader
from .readahead import LoadedChunk, ReadAheadBuffer

logger = logging.getLogger(__name__)

HASH_SLICE_SIZE = 10 * MB


class IdentifierResolver:
    """
    Produces the identifier naming the upload on the server
    Content hashes give dedup across uploads; synthetic identifiers are unique per attempt
    """

    def __init__(self, config: UploaderConfig, reader: FileReader):
        self.config = config
        self.reader = reader

    def generate(self) -> str:
        """Caller strategy if configured, else a hashed app/time/random string"""
        generator = self.config.generate_identifier
        if generator is not None:
            try:
                identifier = generator()
            except Exception as e:
                raise UploadError(f"generate_identifier failed: {e}") from e
            if not isinstance(identifier, str) or not identifier:
                raise UploadError(f"generate_identifier returned {identifier!r}")
            return identifier

        seed = f"{self.config.app_id}-{int(time.time() * 1000)}-{random.random()}"
        return hashlib.md5(seed.encode()).hexdigest()

    async def compute_md5(self, chunks: ChunkIndex,
                          buffer: Optional[ReadAheadBuffer] = None) -> str:
        """
        Hash the file content in bounded slices
        When every chunk fits the read-ahead budget the slices are kept in buffer
        and Pending is emptied so nothing is read twice
        """
        size = chunks.size
        retain = buffer is not None and chunks.total_chunks <= buffer.session.max_load_chunks
        slice_size = chunks.chunk_size if retain else HASH_SLICE_SIZE
        slice_num = -(-size // slice_size)

        md5 = hashlib.md5()
        for i in range(slice_num):
            position = i * slice_size
            length = min(size - position, slice_size)
            try:
                data = await self.reader.read(self.config.temp_file_path, position, length)
            except (OSError, EOFError) as e:
                raise ChunkReadError(f"Failed to read {self.config.temp_file_path} "
                                     f"at {position} while hashing: {e}", index=i) from e

            md5.update(data)
            if retain:
                buffer.push(LoadedChunk(index=i, data=data, length=length))

        if retain:
            chunks.clear_pending()
            logger.debug(f"Retained {slice_num} hashed chunks for upload")

        identifier = md5.hexdigest()
        logger.info(f"Content hash of {self.config.temp_file_path}: {identifier}")
        return identifier
