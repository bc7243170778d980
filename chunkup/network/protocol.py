"""Wire format of the verify, upload and merge requests"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set
import logging

from .transport import add_params

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"


@dataclass
class VerifyResult:
    """Server answer to a verify request"""
    need_upload: bool = True
    uploaded_chunks: Set[int] = field(default_factory=set)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'VerifyResult':
        """Parse {needUpload, uploadedChunks}"""
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected verify response: {payload!r}")

        need_upload = payload.get('needUpload', True)
        uploaded = payload.get('uploadedChunks') or []
        try:
            uploaded_chunks = {int(i) for i in uploaded}
        except TypeError as e:
            raise ValueError(f"Unexpected uploadedChunks: {uploaded!r}") from e

        return cls(
            need_upload=bool(need_upload),
            uploaded_chunks=uploaded_chunks
        )


def session_payload(identifier: str, file_name: str) -> Dict[str, str]:
    """Body shared by verify and merge"""
    return {
        'identifier': identifier,
        'fileName': file_name
    }


def chunk_url(upload_url: str, identifier: str, index: int,
              query: Optional[Dict[str, Any]] = None) -> str:
    """Target URL of one chunk upload"""
    params = {'identifier': identifier, 'index': index}
    params.update(query or {})
    return add_params(upload_url, params)


def chunk_headers(header: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Caller headers with the chunk content type forced"""
    headers = {k: v for k, v in (header or {}).items() if k.lower() != 'content-type'}
    headers['content-type'] = OCTET_STREAM
    return headers
