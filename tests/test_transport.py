"""Test the HTTP transport against a local aiohttp server"""

import asyncio
import hashlib
import pytest

import aiohttp
from aiohttp import test_utils, web

from chunkup.client.client import ChunkedUploader
from chunkup.config import UploaderConfig
from chunkup.exceptions import ChunkUploadError, NegotiationError
from chunkup.network.negotiator import ResumeNegotiator
from chunkup.network.transport import HttpTransport
from chunkup.sync.session import SessionState

pytestmark = pytest.mark.asyncio


def make_app(store):
    """Minimal verify / upload / merge server"""

    async def verify(request):
        identifier = request.query['identifier']
        if identifier in store['merged']:
            return web.json_response({'needUpload': False})
        uploaded = sorted(store['chunks'].get(identifier, {}))
        return web.json_response({'needUpload': True, 'uploadedChunks': uploaded})

    async def upload(request):
        if request.content_type != 'application/octet-stream':
            return web.Response(status=415)
        if store['reject_uploads']:
            return web.Response(status=500)
        identifier = request.query['identifier']
        index = int(request.query['index'])
        store['chunks'].setdefault(identifier, {})[index] = await request.read()
        store['uploads'].append(index)
        store['queries'].append(dict(request.query))
        return web.Response(text='ok')

    async def merge(request):
        identifier = request.query['identifier']
        chunks = store['chunks'][identifier]
        store['merged'][identifier] = b''.join(chunks[i] for i in sorted(chunks))
        return web.Response(text='merged')

    async def broken(request):
        return web.Response(status=500)

    app = web.Application()
    app.router.add_get('/verify', verify)
    app.router.add_post('/upload', upload)
    app.router.add_get('/merge', merge)
    app.router.add_get('/broken', broken)
    return app


@pytest.fixture
def store():
    return {'chunks': {}, 'merged': {}, 'uploads': [], 'queries': [], 'reject_uploads': False}


@pytest.fixture
def server(store):
    return test_utils.TestServer(make_app(store))


def server_config(server, sample_file, **overrides) -> UploaderConfig:
    options = dict(
        temp_file_path=str(sample_file),
        upload_url=str(server.make_url('/upload')),
        verify_url=str(server.make_url('/verify')),
        merge_url=str(server.make_url('/merge')),
        chunk_size=10,
        max_concurrency=2,
        max_memory=100,
    )
    options.update(overrides)
    return UploaderConfig(**options)


async def run_upload(config) -> SessionState:
    uploader = ChunkedUploader(config)
    try:
        await uploader.upload()
        return await asyncio.wait_for(uploader.wait(), 5)
    finally:
        await uploader.close()


class TestHttpUpload:
    """End to end uploads over HTTP"""

    async def test_upload_and_merge(self, server, store, sample_file, payload):
        await server.start_server()
        try:
            state = await run_upload(server_config(server, sample_file, query={'bucket': 'b1'}))
        finally:
            await server.close()

        identifier = hashlib.md5(payload).hexdigest()
        assert state == SessionState.COMPLETE
        assert store['merged'][identifier] == payload
        assert sorted(store['uploads']) == [0, 1, 2]
        assert all(q['bucket'] == 'b1' for q in store['queries'])

    async def test_second_upload_is_deduplicated(self, server, store, sample_file):
        await server.start_server()
        try:
            await run_upload(server_config(server, sample_file))
            state = await run_upload(server_config(server, sample_file))
        finally:
            await server.close()

        assert state == SessionState.COMPLETE
        assert sorted(store['uploads']) == [0, 1, 2]

    async def test_resume_sends_missing_chunks_only(self, server, store, sample_file, payload):
        identifier = hashlib.md5(payload).hexdigest()
        store['chunks'][identifier] = {0: payload[:10]}

        await server.start_server()
        try:
            state = await run_upload(server_config(server, sample_file, max_memory=20))
        finally:
            await server.close()

        assert state == SessionState.COMPLETE
        assert sorted(store['uploads']) == [1, 2]
        assert store['merged'][identifier] == payload

    async def test_rejected_chunks_are_reported(self, server, store, sample_file):
        store['reject_uploads'] = True
        errors = []

        await server.start_server()
        try:
            uploader = ChunkedUploader(server_config(server, sample_file, test_chunks=False))
            uploader.on('error', errors.append)
            await uploader.upload()
            for _ in range(100):
                if len(errors) == 2:
                    break
                await asyncio.sleep(0.01)
            await uploader.close()
        finally:
            await server.close()

        assert len(errors) == 2
        assert all(isinstance(e, ChunkUploadError) for e in errors)
        assert all(isinstance(e.__cause__, aiohttp.ClientResponseError) for e in errors)
        assert uploader.state == SessionState.UPLOADING


class TestHttpTransport:
    """Transport error mapping"""

    async def test_verify_http_error(self, server):
        await server.start_server()
        transport = HttpTransport()
        try:
            negotiator = ResumeNegotiator(transport, str(server.make_url('/broken')),
                                          str(server.make_url('/merge')))
            with pytest.raises(NegotiationError):
                await negotiator.negotiate("abc", "f.bin")
        finally:
            await transport.close()
            await server.close()

    async def test_close_is_idempotent(self):
        transport = HttpTransport()
        await transport.close()
        await transport.close()
