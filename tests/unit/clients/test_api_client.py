"""
Tests for WhatsAppApiClient.

The transport is a mocked requests.Session and the retry pause a mock
callable, so attempt counts and delays are asserted without sleeping.
"""

import threading
from unittest.mock import Mock

import pytest
import requests

from whatsapp_bridge_core.clients import WhatsAppApiClient
from whatsapp_bridge_core.exceptions import (
    ApiError,
    AuthenticationError,
    ExternalServiceError,
    ResponseParseError,
    SigningFailedError,
    TransientNetworkError,
    UnauthorizedError,
    UploadFileNotFoundError,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from whatsapp_bridge_core.services.usage_tracking_service import QueueUsageSink


def _response(status_code=200, json_body=None, text=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    if json_body is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ""
    else:
        response.json.return_value = json_body
        response.text = text or str(json_body)
    return response


@pytest.fixture
def token_issuer():
    issuer = Mock()
    issuer.issue_credential.return_value = "signed-token"
    return issuer


@pytest.fixture
def http_session():
    return Mock(spec=requests.Session)


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def usage_sink():
    return Mock()


@pytest.fixture
def client(app_config, token_issuer, vendor_identity, http_session, sleep, usage_sink):
    return WhatsAppApiClient(
        token_issuer=token_issuer,
        identity_provider=lambda: vendor_identity,
        config=app_config,
        http_session=http_session,
        usage_sink=usage_sink,
        sleep=sleep,
    )


class TestUrlAndRequestShape:
    """Test how requests are built."""

    @pytest.mark.parametrize(
        "base_url,endpoint,expected",
        [
            ("https://wa.test/api/", "/sessions", "https://wa.test/api/sessions"),
            ("https://wa.test/api", "sessions", "https://wa.test/api/sessions"),
            ("https://wa.test/api//", "//sessions/1", "https://wa.test/api/sessions/1"),
        ],
    )
    def test_url_join(self, client, app_config, base_url, endpoint, expected):
        app_config.api.base_url = base_url
        assert client.get_api_url(endpoint) == expected

    def test_get_sends_payload_as_query(self, client, http_session, vendor_identity, token_issuer):
        http_session.request.return_value = _response(200, {"ok": True})

        assert client.get("sessions/abc/status", {"verbose": 1}) == {"ok": True}

        args, kwargs = http_session.request.call_args
        assert args == ("GET", "https://wa.example.test/api/sessions/abc/status")
        assert kwargs["params"] == {"verbose": 1}
        assert "json" not in kwargs
        assert kwargs["timeout"] == 30
        assert kwargs["headers"] == {
            "Authorization": "Bearer signed-token",
            "Content-Type": "application/json",
        }
        token_issuer.issue_credential.assert_called_once_with(vendor_identity)

    def test_post_sends_payload_as_json(self, client, http_session):
        http_session.request.return_value = _response(201, {"client_id": "c1"})

        client.post("sessions", {"name": "Main"})

        args, kwargs = http_session.request.call_args
        assert args[0] == "POST"
        assert kwargs["json"] == {"name": "Main"}
        assert "params" not in kwargs

    def test_delete_sends_payload_as_query(self, client, http_session):
        http_session.request.return_value = _response(200, {"success": True})

        client.delete("sessions/c1", {"force": "1"})

        args, kwargs = http_session.request.call_args
        assert args[0] == "DELETE"
        assert kwargs["params"] == {"force": "1"}

    def test_post_without_payload_sends_empty_json_object(self, client, http_session):
        http_session.request.return_value = _response(201, {"client_id": "c1"})

        client.post("sessions")

        kwargs = http_session.request.call_args[1]
        assert kwargs["json"] == {}
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_get_without_payload_sends_no_query(self, client, http_session):
        http_session.request.return_value = _response(200, [])

        client.get("sessions")

        kwargs = http_session.request.call_args[1]
        assert "params" not in kwargs
        assert "json" not in kwargs

    def test_method_strings_are_accepted(self, client, http_session):
        http_session.request.return_value = _response(200, {})
        client.send("put", "sessions/c1/metadata", {"a": 1})
        assert http_session.request.call_args[0][0] == "PUT"

    def test_fresh_credential_per_call(self, client, http_session, token_issuer):
        http_session.request.return_value = _response(200, {})
        client.get("a")
        client.get("b")
        assert token_issuer.issue_credential.call_count == 2


class TestAuthentication:
    def test_unauthorized_identity_becomes_authentication_error(
        self, client, token_issuer, http_session
    ):
        token_issuer.issue_credential.side_effect = UnauthorizedError()

        with pytest.raises(AuthenticationError) as exc_info:
            client.get("sessions")

        assert isinstance(exc_info.value.cause, UnauthorizedError)
        assert exc_info.value.message == "Failed to generate authentication token"
        http_session.request.assert_not_called()

    def test_signing_failure_is_not_retried(self, client, token_issuer, http_session, sleep):
        token_issuer.issue_credential.side_effect = SigningFailedError()

        with pytest.raises(AuthenticationError):
            client.post("sessions", {})

        assert token_issuer.issue_credential.call_count == 1
        sleep.assert_not_called()
        http_session.request.assert_not_called()


class TestRetries:
    """Test the bounded retry loop."""

    def test_recovers_after_two_connection_failures(self, client, http_session, sleep):
        http_session.request.side_effect = [
            requests.ConnectionError("refused"),
            requests.Timeout("timed out"),
            _response(200, {"status": "qr_ready"}),
        ]

        assert client.get("sessions/c1/status") == {"status": "qr_ready"}
        assert http_session.request.call_count == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(1)

    def test_gives_up_after_max_retries_plus_one(self, client, http_session, sleep):
        http_session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransientNetworkError) as exc_info:
            client.get("sessions")

        assert http_session.request.call_count == 4
        assert sleep.call_count == 3
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.cause, requests.ConnectionError)

    def test_retry_delay_comes_from_config(self, client, app_config, http_session, sleep):
        app_config.api.retry_delay_seconds = 2.5
        http_session.request.side_effect = [
            requests.Timeout("timed out"),
            _response(200, {}),
        ]

        client.get("sessions")

        sleep.assert_called_once_with(2.5)

    def test_zero_retries_means_single_attempt(self, client, app_config, http_session, sleep):
        app_config.api.max_retries = 0
        http_session.request.side_effect = requests.Timeout("slow")

        with pytest.raises(TransientNetworkError):
            client.get("sessions")

        assert http_session.request.call_count == 1
        sleep.assert_not_called()

    def test_other_transport_errors_are_not_retried(self, client, http_session, sleep):
        http_session.request.side_effect = requests.exceptions.InvalidURL("bad url")

        with pytest.raises(ExternalServiceError) as exc_info:
            client.get("sessions")

        assert not isinstance(exc_info.value, TransientNetworkError)
        assert http_session.request.call_count == 1
        sleep.assert_not_called()

    def test_http_errors_are_not_retried(self, client, http_session, sleep):
        http_session.request.return_value = _response(500, {"message": "Internal"})

        with pytest.raises(ApiError):
            client.get("sessions")

        assert http_session.request.call_count == 1
        sleep.assert_not_called()


class TestResponseClassification:
    """Test how responses are turned into results or errors."""

    def test_error_message_from_message_field(self, client, http_session):
        http_session.request.return_value = _response(404, {"message": "Session not found"})

        with pytest.raises(ApiError) as exc_info:
            client.get("sessions/missing")

        assert exc_info.value.api_status == 404
        assert exc_info.value.message == "Session not found"
        assert http_session.request.call_count == 1

    def test_message_preferred_over_error(self, client, http_session):
        http_session.request.return_value = _response(
            400, {"message": "Bad name", "error": "validation"}
        )
        with pytest.raises(ApiError) as exc_info:
            client.post("sessions", {})
        assert exc_info.value.message == "Bad name"

    def test_error_field_used_when_no_message(self, client, http_session):
        http_session.request.return_value = _response(409, {"error": "Session exists"})
        with pytest.raises(ApiError) as exc_info:
            client.post("sessions", {})
        assert exc_info.value.message == "Session exists"

    def test_fallback_message_for_unparseable_error_body(self, client, http_session):
        http_session.request.return_value = _response(502, text="<html>Bad gateway</html>")
        with pytest.raises(ApiError) as exc_info:
            client.get("sessions")
        assert exc_info.value.message == "API request failed"
        assert exc_info.value.api_status == 502

    def test_non_json_success_body(self, client, http_session):
        http_session.request.return_value = _response(200, text="OK")
        with pytest.raises(ResponseParseError):
            client.get("sessions")

    def test_empty_success_body(self, client, http_session):
        http_session.request.return_value = _response(204, text="")
        with pytest.raises(ResponseParseError):
            client.delete("sessions/c1")


class TestUsageTracking:
    def test_event_recorded_per_response(self, client, http_session, usage_sink):
        http_session.request.return_value = _response(200, {})

        client.get("sessions/c1/status?verbose=1")

        event = usage_sink.record.call_args[0][0]
        assert event.endpoint == "sessions/c1/status"
        assert event.method == "GET"
        assert event.response_code == 200
        assert event.event_type.value == "api_call"

    def test_event_recorded_for_error_response(self, client, http_session, usage_sink):
        http_session.request.return_value = _response(404, {"message": "nope"})
        with pytest.raises(ApiError):
            client.get("sessions/x")
        assert usage_sink.record.call_args[0][0].response_code == 404

    def test_no_event_without_response(self, client, app_config, http_session, usage_sink):
        app_config.api.max_retries = 0
        http_session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransientNetworkError):
            client.get("sessions")
        usage_sink.record.assert_not_called()

    def test_sink_errors_do_not_fail_the_call(self, client, http_session, usage_sink):
        usage_sink.record.side_effect = RuntimeError("queue down")
        http_session.request.return_value = _response(200, {"ok": True})
        assert client.get("sessions") == {"ok": True}

    def test_stalled_queue_does_not_hold_up_calls(
        self, app_config, token_issuer, vendor_identity, http_session
    ):
        release = threading.Event()
        sending = threading.Event()

        def stalled_send(message):
            sending.set()
            release.wait(5)

        queue_client = Mock()
        queue_client.send_message.side_effect = stalled_send
        sink = QueueUsageSink(
            "UseDevelopmentStorage=true", "usage-queue", queue_client=queue_client, batch_size=1
        )
        client = WhatsAppApiClient(
            token_issuer=token_issuer,
            identity_provider=lambda: vendor_identity,
            config=app_config,
            http_session=http_session,
            usage_sink=sink,
            sleep=Mock(),
        )
        http_session.request.return_value = _response(200, {"ok": True})

        assert client.get("sessions") == {"ok": True}
        assert sending.wait(5)
        assert not release.is_set()

        release.set()
        sink.close()
        assert queue_client.send_message.call_count == 1

    def test_close_flushes_sink(self, client, usage_sink):
        client.close()
        usage_sink.flush.assert_called_once_with()


class TestCorrelation:
    """Test that errors raised by one call share a correlation id."""

    def test_api_error_carries_correlation_id(self, client, http_session):
        http_session.request.return_value = _response(404, {"message": "nope"})

        with pytest.raises(ApiError) as exc_info:
            client.get("sessions/x")

        assert exc_info.value.context["correlation_id"]
        assert exc_info.value.to_dict()["error"]["correlation_id"] == (
            exc_info.value.context["correlation_id"]
        )
        assert get_correlation_id() is None

    def test_wrapped_signing_error_shares_correlation_id(self, client, token_issuer):
        def refuse(identity):
            raise UnauthorizedError()

        token_issuer.issue_credential.side_effect = refuse

        with pytest.raises(AuthenticationError) as exc_info:
            client.get("sessions")

        error = exc_info.value
        assert error.context["correlation_id"] == error.cause.context["correlation_id"]

    def test_outer_correlation_id_is_reused(self, client, http_session):
        http_session.request.return_value = _response(500, {"message": "boom"})
        set_correlation_id("request-123")
        try:
            with pytest.raises(ApiError) as exc_info:
                client.get("sessions")
            assert exc_info.value.context["correlation_id"] == "request-123"
            assert get_correlation_id() == "request-123"
        finally:
            clear_correlation_id()


class TestDebugLogging:
    def test_requests_logged_in_debug_mode(self, client, app_config, http_session):
        app_config.features.debug_mode = True
        client.logger = Mock()
        http_session.request.return_value = _response(200, {"ok": True})

        client.post("sessions", {"name": "Main"})

        messages = [c.args[0] for c in client.logger.info.call_args_list]
        assert "WhatsApp API request: POST https://wa.example.test/api/sessions" in messages
        assert "WhatsApp API response: 200" in messages

    def test_silent_without_debug_mode(self, client, http_session):
        client.logger = Mock()
        http_session.request.return_value = _response(200, {"ok": True})
        client.get("sessions")
        client.logger.info.assert_not_called()


class TestMultipartUpload:
    """Test send_multipart."""

    def test_missing_file_fails_before_token(self, client, token_issuer, http_session, tmp_path):
        with pytest.raises(UploadFileNotFoundError):
            client.send_multipart("media/upload", str(tmp_path / "missing.png"))

        token_issuer.issue_credential.assert_not_called()
        http_session.request.assert_not_called()

    def test_upload_shape(self, client, http_session, tmp_path):
        image = tmp_path / "catalog.png"
        image.write_bytes(b"\x89PNG...")
        http_session.request.return_value = _response(200, {"media_id": "m1"})

        assert client.send_multipart("media/upload", str(image)) == {"media_id": "m1"}

        args, kwargs = http_session.request.call_args
        assert args == ("POST", "https://wa.example.test/api/media/upload")
        assert kwargs["timeout"] == 60
        assert kwargs["headers"] == {"Authorization": "Bearer signed-token"}
        assert kwargs["files"] == {"file": ("catalog.png", b"\x89PNG...", "image/png")}

    def test_upload_filename_override(self, client, http_session, tmp_path):
        path = tmp_path / "upload.bin"
        path.write_bytes(b"data")
        http_session.request.return_value = _response(200, {})

        client.send_multipart("media/upload", str(path), filename="report.pdf")

        name, _, content_type = http_session.request.call_args.kwargs["files"]["file"]
        assert name == "report.pdf"
        assert content_type == "application/pdf"

    def test_upload_retries_connection_errors(self, client, http_session, sleep, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("hello")
        http_session.request.side_effect = [
            requests.ConnectionError("reset"),
            _response(200, {"ok": True}),
        ]

        assert client.send_multipart("media/upload", str(path)) == {"ok": True}
        assert http_session.request.call_count == 2
        assert sleep.call_count == 1

    def test_upload_error_fallback_message(self, client, http_session, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("hello")
        http_session.request.return_value = _response(413, text="Too large")

        with pytest.raises(ApiError) as exc_info:
            client.send_multipart("media/upload", str(path))
        assert exc_info.value.message == "API upload request failed"
