"""Pytest configuration and fixtures"""

import pytest
import asyncio
import tempfile
import shutil
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

import aiohttp

from chunkup.config import UploaderConfig


class FakeTransport:
    """In-memory stand-in for HttpTransport"""

    def __init__(self, verify: Optional[Dict] = None, fail_verify: bool = False,
                 fail_merge: int = 0, fail_chunks: Optional[Dict[int, int]] = None,
                 hold: bool = False):
        self.verify_response = verify if verify is not None else {
            'needUpload': True, 'uploadedChunks': []
        }
        self.fail_verify = fail_verify
        self.fail_merge = fail_merge
        self.fail_chunks = dict(fail_chunks or {})
        self.hold = hold

        self.verify_calls = []
        self.merge_calls = []
        self.posts = []
        self.urls = []
        self.headers = []
        self.bodies: Dict[int, bytes] = {}
        self.completed = []
        self.inflight = 0
        self.max_inflight = 0
        self.closed = False
        self._gates: Dict[int, asyncio.Event] = {}

    def _gate(self, index: int) -> asyncio.Event:
        if index not in self._gates:
            self._gates[index] = asyncio.Event()
        return self._gates[index]

    def release(self, index: int):
        self._gate(index).set()

    def release_all(self):
        self.hold = False
        for gate in self._gates.values():
            gate.set()

    async def get_json(self, url, params=None):
        self.verify_calls.append(params)
        await asyncio.sleep(0)
        if self.fail_verify:
            raise aiohttp.ClientError("verify unavailable")
        return self.verify_response

    async def get(self, url, params=None):
        self.merge_calls.append(params)
        await asyncio.sleep(0)
        if self.fail_merge:
            self.fail_merge -= 1
            raise aiohttp.ClientError("merge unavailable")

    async def post_bytes(self, url, data, headers=None):
        index = int(parse_qs(urlsplit(url).query)['index'][0])
        self.posts.append(index)
        self.urls.append(url)
        self.headers.append(headers)
        self.inflight += 1
        self.max_inflight = max(self.max_inflight, self.inflight)
        try:
            if self.hold:
                gate = self._gate(index)
                await gate.wait()
                gate.clear()
            else:
                await asyncio.sleep(0)

            if self.fail_chunks.get(index, 0) > 0:
                self.fail_chunks[index] -= 1
                raise aiohttp.ClientError(f"chunk {index} rejected")
        finally:
            self.inflight -= 1

        self.bodies[index] = data
        self.completed.append(index)

    async def close(self):
        self.closed = True


class MemoryReader:
    """In-memory stand-in for FileReader"""

    def __init__(self, data: bytes, fail_positions: Optional[Dict[int, int]] = None,
                 gate: Optional[asyncio.Event] = None):
        self.data = data
        self.fail_positions = dict(fail_positions or {})
        self.gate = gate
        self.reads = []

    async def read(self, file_path, position, length):
        self.reads.append((position, length))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.fail_positions.get(position, 0) > 0:
            self.fail_positions[position] -= 1
            raise OSError(f"read error at {position}")
        return self.data[position:position + length]


async def drain(rounds: int = 50):
    """Let pending callbacks and tasks run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_config(**overrides) -> UploaderConfig:
    options = dict(
        temp_file_path="/virtual/sample.bin",
        file_name="sample.bin",
        upload_url="http://upload.test/chunk",
        verify_url="http://upload.test/verify",
        merge_url="http://upload.test/merge",
        size=25,
        chunk_size=10,
        max_concurrency=2,
        max_memory=100,
        test_chunks=False,
    )
    options.update(overrides)
    return UploaderConfig(**options)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def payload():
    """25 bytes of distinct content, three chunks of 10"""
    return bytes(range(25))


@pytest.fixture
def sample_file(temp_dir, payload):
    """Payload written to disk"""
    path = temp_dir / "sample.bin"
    path.write_bytes(payload)
    return path
