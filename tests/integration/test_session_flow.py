"""
End-to-end session lifecycle with real issuer, client, repositories and
sinks. Only the HTTP transport is mocked.
"""

from unittest.mock import Mock

import pytest
import requests

from whatsapp_bridge_core.auth import TokenIssuer
from whatsapp_bridge_core.clients import WhatsAppApiClient
from whatsapp_bridge_core.constants import OptionName
from whatsapp_bridge_core.enums import SessionStatus
from whatsapp_bridge_core.services import VendorSessionService, create_usage_sink


def _json_response(status_code, body):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.json.return_value = body
    response.text = str(body)
    return response


@pytest.fixture
def http_session():
    return Mock(spec=requests.Session)


@pytest.fixture
def issuer(app_config, option_repository):
    app_config.security.signing_secret = None
    return TokenIssuer(app_config, option_repository=option_repository)


@pytest.fixture
def service(app_config, issuer, option_repository, session_repository, vendor_identity, http_session):
    app_config.features.enable_usage_tracking = True
    usage_sink = create_usage_sink(app_config, option_repository)
    client = WhatsAppApiClient(
        token_issuer=issuer,
        identity_provider=lambda: vendor_identity,
        config=app_config,
        http_session=http_session,
        usage_sink=usage_sink,
        sleep=Mock(),
    )
    return VendorSessionService(client, session_repository, usage_sink=usage_sink)


class TestSessionLifecycle:
    def test_create_poll_disconnect(self, service, issuer, http_session, option_repository):
        http_session.request.side_effect = [
            _json_response(201, {"client_id": "client-1", "qr_code": "qr"}),
            _json_response(200, {"success": True}),
            _json_response(200, {"status": "authenticated"}),
            _json_response(200, {"success": True}),
        ]

        created = service.create_session(7, "Main")
        assert created.record.status is SessionStatus.QR_READY

        assert service.check_status(7).status is SessionStatus.AUTHENTICATED

        result = service.disconnect(7)
        assert result.remote_disconnected is True
        assert service.get_session(7) is None

        # Every call carried a credential the issuer accepts
        for call in http_session.request.call_args_list:
            header = call.kwargs["headers"]["Authorization"]
            claims = issuer.validate_bearer_header(header)
            assert claims.vendor_id == 7

        stats = option_repository.get_option(OptionName.API_CALL_STATS.value)
        assert stats["sessions"] == {"total": 1, "success": 1, "failed": 0}
        assert stats["sessions/client-1/status"]["total"] == 1
        assert option_repository.get_option(OptionName.SESSION_COUNT.value) == 1

    def test_rotation_between_calls(self, service, issuer, http_session):
        http_session.request.return_value = _json_response(200, {"sessions": []})

        service.list_remote_sessions(7)
        first_header = http_session.request.call_args.kwargs["headers"]["Authorization"]

        issuer.rotate_secret()
        service.list_remote_sessions(7)
        second_header = http_session.request.call_args.kwargs["headers"]["Authorization"]

        assert issuer.validate_bearer_header(first_header) is None
        assert issuer.validate_bearer_header(second_header) is not None
