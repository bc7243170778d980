"""Positional file reads"""

import logging

import aiofiles

logger = logging.getLogger(__name__)


class FileReader:
    """Reads byte ranges of a file without blocking the event loop"""

    async def read(self, file_path: str, position: int, length: int) -> bytes:
        async with aiofiles.open(file_path, 'rb') as f:
            await f.seek(position)
            data = await f.read(length)

        if len(data) != length:
            raise EOFError(f"Short read from {file_path} at {position}: "
                           f"expected {length} bytes, got {len(data)}")
        return data
