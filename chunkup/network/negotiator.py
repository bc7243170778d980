"""Resume negotiation and merge requests"""

import asyncio
import logging

import aiohttp

from ..exceptions import MergeError, NegotiationError
from .protocol import VerifyResult, session_payload
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class ResumeNegotiator:
    """Asks the server which chunks it already holds, and asks it to merge them"""

    def __init__(self, transport: HttpTransport, verify_url: str, merge_url: str):
        self.transport = transport
        self.verify_url = verify_url
        self.merge_url = merge_url

    async def negotiate(self, identifier: str, file_name: str) -> VerifyResult:
        """
        Query previously uploaded chunks
        need_upload False means the whole file is already stored under identifier
        """
        try:
            payload = await self.transport.get_json(
                self.verify_url, session_payload(identifier, file_name)
            )
            result = VerifyResult.from_payload(payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise NegotiationError(f"Verify request failed for {identifier}: {e}") from e

        logger.info(f"Verify {identifier}: need_upload={result.need_upload}, "
                    f"{len(result.uploaded_chunks)} chunks already uploaded")
        return result

    async def merge(self, identifier: str, file_name: str):
        """Ask the server to assemble the uploaded chunks"""
        try:
            await self.transport.get(
                self.merge_url, session_payload(identifier, file_name)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise MergeError(f"Merge request failed for {identifier}: {e}") from e

        logger.info(f"Merged {file_name} ({identifier})")
