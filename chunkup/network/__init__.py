from .chunks import ChunkIndex, ChunkInfo, ChunkStatus
from .protocol import VerifyResult, chunk_url, chunk_headers, session_payload
from .transport import HttpTransport, add_params
from .negotiator import ResumeNegotiator

__all__ = [
    'ChunkIndex',
    'ChunkInfo',
    'ChunkStatus',
    'VerifyResult',
    'chunk_url',
    'chunk_headers',
    'session_payload',
    'HttpTransport',
    'add_params',
    'ResumeNegotiator'
]
