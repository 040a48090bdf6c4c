"""
Unit tests for the streaming response writer.
"""

from datetime import datetime, timezone

import pytest

from requestpipe.http.response import (
    ResponseWriter,
    ResponseState,
    ResponseAlreadyStartedError,
    format_http_date,
)
from requestpipe.http.status_codes import HTTPStatus, status_phrase, is_valid_status_code

from conftest import ParsedResponse, RecordingTransport


class TestResponseState:
    """Tests for the started flag."""

    def test_starts_unstarted(self):
        assert ResponseState().has_started is False

    def test_mark_started_is_one_way(self):
        state = ResponseState()
        state.mark_started()
        state.mark_started()

        assert state.has_started is True


class TestBufferedResponse:
    """Tests for responses that fit in the buffer."""

    def test_complete_sends_whole_response(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.content_type = "text/plain"
        response.write("hello")
        response.complete()

        parsed = ParsedResponse(transport.data)
        assert parsed.status_line == "HTTP/1.1 200 OK"
        assert parsed.headers["content-length"] == "5"
        assert parsed.headers["content-type"] == "text/plain"
        assert parsed.body == b"hello"
        assert len(transport.sends) == 1

    def test_date_and_server_headers(self, transport: RecordingTransport):
        response = ResponseWriter(transport, server_name="test/1.0")
        response.complete()

        parsed = ParsedResponse(transport.data)
        assert parsed.headers["server"] == "test/1.0"
        assert parsed.headers["date"].endswith("GMT")

    def test_nothing_sent_before_complete(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.write(b"buffered")

        assert transport.sends == []
        assert response.has_started is False
        assert response.body_length == 8

    def test_utf8_body_length(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.write("héllo")
        response.complete()

        assert ParsedResponse(transport.data).headers["content-length"] == "6"

    def test_complete_is_idempotent(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.complete()
        response.complete()

        assert len(transport.sends) == 1
        assert response.is_completed is True

    def test_write_after_complete_raises(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.complete()

        with pytest.raises(ResponseAlreadyStartedError):
            response.write("late")


class TestStreamingResponse:
    """Tests for chunked responses."""

    def test_flush_starts_chunked_response(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.write("partial")
        response.flush()

        assert response.has_started is True
        assert response.state.has_started is True
        parsed = ParsedResponse(transport.data)
        assert parsed.chunked is True
        assert "content-length" not in parsed.headers
        assert parsed.body == b"partial"
        assert parsed.terminated is False

    def test_writes_after_start_are_chunks(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.flush()
        response.write("one")
        response.write("two")
        response.complete()

        parsed = ParsedResponse(transport.data)
        assert parsed.body == b"onetwo"
        assert parsed.terminated is True
        assert transport.data.endswith(b"0\r\n\r\n")

    def test_buffer_overflow_starts_streaming(self, transport: RecordingTransport):
        response = ResponseWriter(transport, buffer_size=4)
        response.write("abc")
        assert response.has_started is False

        response.write("de")
        assert response.has_started is True
        assert ParsedResponse(transport.data).body == b"abcde"

    def test_zero_buffer_streams_immediately(self, transport: RecordingTransport):
        response = ResponseWriter(transport, buffer_size=0)
        response.write("x")

        assert response.has_started is True


class TestMutationRules:
    """Tests for what may change before and after the response starts."""

    def test_clear_resets_everything(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.status_code = 201
        response.set_header("X-Custom", "1")
        response.write("discard me")

        response.clear()
        response.complete()

        parsed = ParsedResponse(transport.data)
        assert parsed.status_code == 200
        assert "x-custom" not in parsed.headers
        assert parsed.body == b""

    def test_clear_after_start_raises(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.flush()

        with pytest.raises(ResponseAlreadyStartedError):
            response.clear()

    def test_status_after_start_raises(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.flush()

        with pytest.raises(ResponseAlreadyStartedError):
            response.status_code = 500

    def test_header_after_start_raises(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.flush()

        with pytest.raises(ResponseAlreadyStartedError):
            response.set_header("X-Late", "1")

    def test_already_started_is_runtime_error(self):
        assert issubclass(ResponseAlreadyStartedError, RuntimeError)

    def test_invalid_status_rejected(self, transport: RecordingTransport):
        response = ResponseWriter(transport)

        with pytest.raises(ValueError):
            response.status_code = 99

    def test_set_header_is_case_insensitive(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.set_header("content-type", "text/html")
        response.set_header("Content-Type", "text/plain")

        assert response.headers == {"Content-Type": "text/plain"}
        assert response.get_header("CONTENT-TYPE") == "text/plain"


class TestStartingCallbacks:
    """Tests for on_starting."""

    def test_runs_once_before_head(self, transport: RecordingTransport):
        calls = []
        response = ResponseWriter(transport)
        response.on_starting(lambda r: calls.append(r.has_started))
        response.on_starting(lambda r: r.set_header("X-Tag", "abc"))
        response.flush()
        response.complete()

        assert calls == [False]
        assert ParsedResponse(transport.data).headers["x-tag"] == "abc"

    def test_transport_callback_survives_clear(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.on_starting(lambda r: r.set_header("Connection", "close"), transport=True)
        response.set_header("X-Gone", "1")
        response.clear()
        response.complete()

        parsed = ParsedResponse(transport.data)
        assert parsed.headers["connection"] == "close"
        assert "x-gone" not in parsed.headers

    def test_other_callbacks_dropped_by_clear(self, transport: RecordingTransport):
        calls = []
        response = ResponseWriter(transport)
        response.on_starting(lambda r: calls.append("app"))
        response.on_starting(lambda r: r.set_header("X-Tag", "abc"))
        response.clear()
        response.complete()

        assert calls == []
        assert "x-tag" not in ParsedResponse(transport.data).headers


class TestTransportFailure:
    """Tests for a client that disconnects mid-response."""

    def test_started_even_when_send_fails(self):
        transport = RecordingTransport(fail_after=0)
        response = ResponseWriter(transport)
        response.write("hello")

        with pytest.raises(OSError):
            response.complete()

        assert response.has_started is True
        with pytest.raises(ResponseAlreadyStartedError):
            response.clear()

    def test_chunk_send_failure_propagates(self):
        transport = RecordingTransport(fail_after=1)
        response = ResponseWriter(transport)
        response.flush()

        with pytest.raises(ConnectionResetError):
            response.write("more")


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        """Test that all statuses have phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert HTTPStatus.INTERNAL_SERVER_ERROR.phrase == "Internal Server Error"

    def test_status_categories(self):
        """Test status category helpers."""
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error

        assert HTTPStatus.NOT_FOUND.is_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_error
        assert not HTTPStatus.OK.is_error

    def test_phrase_for_unlisted_codes(self):
        assert status_phrase(404) == "Not Found"
        assert status_phrase(418) == "Client Error"
        assert status_phrase(599) == "Server Error"

    def test_valid_status_codes(self):
        assert is_valid_status_code(100)
        assert is_valid_status_code(599)
        assert not is_valid_status_code(600)
        assert not is_valid_status_code(True)
        assert not is_valid_status_code("200")

    def test_status_line_for_unlisted_code(self, transport: RecordingTransport):
        response = ResponseWriter(transport)
        response.status_code = 418

        assert response.status_line == "HTTP/1.1 418 Client Error"


class TestFormatHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        """Test HTTP date format."""
        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"
