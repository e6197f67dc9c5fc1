"""Tests for the HTTP transcription client."""

import base64
from unittest import mock

import pytest
import requests

from transcriptq.client import HttpTranscriptionClient, ServiceState
from transcriptq.errors import PermanentSubmissionError, StatusCheckError, TransientSubmissionError
from transcriptq.models import ResourceRef

RESOURCE = ResourceRef(id="uploads/lesson.mp3", size=5, mime_type="audio/mpeg")


def make_response(status_code=200, body=None, text=""):
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def http_client(session):
    return HttpTranscriptionClient(
        base_url="https://transcribe.example.org/v1/",
        api_key="secret",
        model="gemini-2.5-flash",
        temperature=0.2,
        max_output_tokens=4096,
        timeout=12,
        session=session,
    )


class TestSubmit:

    def test_request_shape(self, http_client, session):
        session.post.return_value = make_response(200, {"handle": "batches/abc"})

        handle = http_client.submit("Transcribe.", RESOURCE, b"audio", idempotency_key="job-1")

        assert handle == "batches/abc"
        args, kwargs = session.post.call_args
        assert args[0] == "https://transcribe.example.org/v1/jobs"
        assert kwargs["timeout"] == 12
        assert kwargs["headers"]["x-goog-api-key"] == "secret"
        assert kwargs["headers"]["Idempotency-Key"] == "job-1"
        body = kwargs["json"]
        assert body["model"] == "gemini-2.5-flash"
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"text": "Transcribe."}
        assert parts[1]["inline_data"]["mime_type"] == "audio/mpeg"
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"audio"
        assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 4096}

    @pytest.mark.parametrize("code", [429, 500, 503])
    def test_retryable_status(self, http_client, session, code):
        session.post.return_value = make_response(code, text="busy")
        with pytest.raises(TransientSubmissionError):
            http_client.submit("p", RESOURCE, b"a")

    def test_connection_error(self, http_client, session):
        session.post.side_effect = requests.ConnectionError("reset")
        with pytest.raises(TransientSubmissionError):
            http_client.submit("p", RESOURCE, b"a")

    def test_timeout(self, http_client, session):
        session.post.side_effect = requests.Timeout("slow")
        with pytest.raises(TransientSubmissionError):
            http_client.submit("p", RESOURCE, b"a")

    def test_rejected(self, http_client, session):
        session.post.return_value = make_response(400, text="invalid mime type")
        with pytest.raises(PermanentSubmissionError, match="invalid mime type"):
            http_client.submit("p", RESOURCE, b"a")

    def test_missing_handle(self, http_client, session):
        session.post.return_value = make_response(200, {"status": "ok"})
        with pytest.raises(PermanentSubmissionError):
            http_client.submit("p", RESOURCE, b"a")


class TestGetStatus:

    def test_succeeded(self, http_client, session):
        result = {"candidates": [{"content": {"parts": [{"text": "Hello world"}]}}]}
        session.get.return_value = make_response(200, {"state": "succeeded", "result": result})

        status = http_client.get_status("batches/abc")

        assert status.state == ServiceState.SUCCEEDED
        assert status.result == result
        assert session.get.call_args[0][0] == "https://transcribe.example.org/v1/jobs/batches/abc"

    def test_failed(self, http_client, session):
        session.get.return_value = make_response(200, {"state": "failed", "error": "bad audio"})
        status = http_client.get_status("h")
        assert status.state == ServiceState.FAILED
        assert status.error == "bad audio"

    def test_unknown_state(self, http_client, session):
        session.get.return_value = make_response(200, {"state": "JOB_STATE_PAUSED"})
        with pytest.raises(StatusCheckError):
            http_client.get_status("h")

    def test_server_error(self, http_client, session):
        session.get.return_value = make_response(502, text="bad gateway")
        with pytest.raises(StatusCheckError):
            http_client.get_status("h")

    def test_unreachable(self, http_client, session):
        session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(StatusCheckError):
            http_client.get_status("h")

    def test_invalid_json(self, http_client, session):
        session.get.return_value = make_response(200, ValueError("not json"))
        with pytest.raises(StatusCheckError):
            http_client.get_status("h")

    def test_text_result(self, http_client, session):
        session.get.return_value = make_response(200, {"state": "succeeded", "result": "Hello world"})
        status = http_client.get_status("h")
        assert status.state == ServiceState.SUCCEEDED
        assert status.result == "Hello world"

    def test_structured_error(self, http_client, session):
        body = {"state": "failed", "error": {"code": 400, "message": "Audio could not be decoded"}}
        session.get.return_value = make_response(200, body)
        status = http_client.get_status("h")
        assert status.state == ServiceState.FAILED
        assert status.error == "Audio could not be decoded"

    def test_structured_error_without_message(self, http_client, session):
        session.get.return_value = make_response(200, {"state": "failed", "error": {"code": 500}})
        status = http_client.get_status("h")
        assert status.error == '{"code": 500}'

    def test_malformed_result(self, http_client, session):
        session.get.return_value = make_response(200, {"state": "succeeded", "result": ["Hello"]})
        with pytest.raises(StatusCheckError):
            http_client.get_status("h")
