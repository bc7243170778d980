"""Test wire format helpers"""

import pytest
from urllib.parse import parse_qs, urlsplit

from chunkup.network.protocol import VerifyResult, chunk_headers, chunk_url, session_payload
from chunkup.network.transport import add_params


class TestAddParams:
    """Test URL parameter encoding"""

    def test_appends(self):
        assert add_params("http://h/up", {'a': 1, 'b': 'x y'}) == "http://h/up?a=1&b=x+y"

    def test_keeps_existing_query(self):
        assert add_params("http://h/up?t=1", {'a': 2}) == "http://h/up?t=1&a=2"

    def test_empty(self):
        assert add_params("http://h/up", {}) == "http://h/up"


class TestChunkRequest:
    """Test chunk upload request shape"""

    def test_chunk_url(self):
        """Test identifier, index and caller query are all carried"""
        url = chunk_url("http://h/up", "abc", 3, {'token': 't'})
        query = parse_qs(urlsplit(url).query)

        assert query == {'identifier': ['abc'], 'index': ['3'], 'token': ['t']}

    def test_chunk_headers(self):
        """Test content type is forced over caller headers"""
        headers = chunk_headers({'Authorization': 'Bearer x', 'Content-Type': 'text/plain'})

        assert headers == {
            'Authorization': 'Bearer x',
            'content-type': 'application/octet-stream'
        }

    def test_session_payload(self):
        assert session_payload("abc", "f.bin") == {'identifier': 'abc', 'fileName': 'f.bin'}


class TestVerifyResult:
    """Test verify response parsing"""

    def test_partial(self):
        result = VerifyResult.from_payload({'needUpload': True, 'uploadedChunks': [2, '0']})

        assert result.need_upload is True
        assert result.uploaded_chunks == {0, 2}

    def test_dedup(self):
        result = VerifyResult.from_payload({'needUpload': False})

        assert result.need_upload is False
        assert result.uploaded_chunks == set()

    def test_invalid(self):
        with pytest.raises(ValueError):
            VerifyResult.from_payload(["not", "a", "dict"])

    @pytest.mark.parametrize("uploaded", [5, [{'a': 1}], [None]])
    def test_invalid_uploaded_chunks(self, uploaded):
        """Test a badly shaped chunk list is rejected as ValueError"""
        with pytest.raises(ValueError):
            VerifyResult.from_payload({'needUpload': True, 'uploadedChunks': uploaded})
