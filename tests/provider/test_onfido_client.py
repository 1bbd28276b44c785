import pytest
from unittest.mock import patch, MagicMock
import httpx

from idvflow.core.config import BiometricCheck, FlowConfig
from idvflow.core.errors import ProviderError
from idvflow.provider.onfido_client import OnfidoClient, build_applicant_update
from idvflow.store.models import Applicant, UserData


@pytest.fixture(autouse=True)
def quiet():
    with patch("idvflow.provider.onfido_client.metrics"), \
         patch("idvflow.provider.onfido_client.log") as mock_log, \
         patch("idvflow.provider.onfido_client.time.sleep") as mock_sleep:
        yield mock_log, mock_sleep


def _resp(status=200, body=None, headers=None):
    r = MagicMock()
    r.status_code = status
    r.content = b"{}" if body is not None else b""
    r.json.return_value = body
    r.headers = headers or {}
    r.text = "" if body is None else str(body)
    return r


def _client(http, **cfg):
    return OnfidoClient(FlowConfig(api_token="tok", **cfg), http=http)


def test_create_applicant_sends_token_header():
    http = MagicMock()
    http.request.return_value = _resp(201, {"id": "app-1"})

    applicant = _client(http).create_applicant()

    assert applicant == Applicant(id="app-1")
    method, path = http.request.call_args.args
    assert (method, path) == ("POST", "applicants")
    assert http.request.call_args.kwargs["headers"]["Authorization"] == "Token token=tok"


def test_request_capture_token_binds_referrer():
    http = MagicMock()
    http.request.return_value = _resp(200, {"token": "sdk-1"})

    token = _client(http, referrer="https://idp.example.com/*").request_capture_token(Applicant(id="app-1"))

    assert token == "sdk-1"
    assert http.request.call_args.kwargs["json"] == {"applicant_id": "app-1", "referrer": "https://idp.example.com/*"}


@pytest.mark.parametrize("mode,reports", [
    (BiometricCheck.NONE, ["document"]),
    (BiometricCheck.SELFIE, ["document", "facial_similarity_photo"]),
    (BiometricCheck.LIVE, ["document", "facial_similarity_video"]),
])
def test_create_check_reports_follow_biometric_mode(mode, reports):
    http = MagicMock()
    http.request.return_value = _resp(201, {"id": "chk-1"})

    check = _client(http, biometric_check=mode).create_check("app-1")

    assert check.id == "chk-1"
    assert http.request.call_args.kwargs["json"] == {"applicant_id": "app-1", "report_names": reports}


def test_retries_on_503_then_succeeds(quiet):
    _, mock_sleep = quiet
    http = MagicMock()
    http.request.side_effect = [_resp(503, {"error": "busy"}), _resp(201, {"id": "chk-1"})]

    check = _client(http).create_check("app-1")

    assert check.id == "chk-1"
    assert http.request.call_count == 2
    assert mock_sleep.called


def test_timeouts_exhaust_retries():
    http = MagicMock()
    http.request.side_effect = httpx.ReadTimeout("slow")

    with pytest.raises(ProviderError, match="timeout"):
        _client(http, max_retries=2).create_applicant()
    assert http.request.call_count == 3


def test_client_error_is_not_retried(quiet):
    mock_log, _ = quiet
    http = MagicMock()
    http.request.return_value = _resp(422, {"error": {"message": "applicant_id invalid"}})

    with pytest.raises(ProviderError) as exc_info:
        _client(http).create_check("bad")

    assert exc_info.value.status_code == 422
    assert "applicant_id invalid" not in str(exc_info.value)
    assert http.request.call_count == 1
    assert mock_log.call_args.kwargs["event"] == "onfido_request_failed"


def test_transport_error_is_provider_error():
    http = MagicMock()
    http.request.side_effect = httpx.ConnectError("refused")
    with pytest.raises(ProviderError):
        _client(http).create_applicant()


def test_fetch_extracted_attributes_uses_latest_document():
    http = MagicMock()
    http.request.side_effect = [
        _resp(200, {"documents": [
            {"id": "doc-old", "created_at": "2024-01-01T00:00:00Z"},
            {"id": "doc-new", "created_at": "2024-02-01T00:00:00Z"},
        ]}),
        _resp(201, {
            "document_id": "doc-new",
            "document_classification": {"document_type": "passport"},
            "extracted_data": {"first_name": "Ana", "last_name": "Lima", "address_line_1": "1 Main St"},
        }),
    ]

    ud = _client(http).fetch_extracted_attributes("app-1")

    assert ud.first_name == "Ana"
    assert ud.document_type == "passport"
    first, second = http.request.call_args_list
    assert first.kwargs["params"] == {"applicant_id": "app-1"}
    assert second.kwargs["json"] == {"document_id": "doc-new"}


def test_fetch_extracted_attributes_without_documents():
    http = MagicMock()
    http.request.return_value = _resp(200, {"documents": []})
    assert _client(http).fetch_extracted_attributes("app-1") is None
    assert http.request.call_count == 1


def test_fetch_extracted_attributes_with_empty_extraction():
    http = MagicMock()
    http.request.side_effect = [
        _resp(200, {"documents": [{"id": "doc-1"}]}),
        _resp(201, {"extracted_data": {}}),
    ]
    assert _client(http).fetch_extracted_attributes("app-1") is None


def test_push_applicant_attributes():
    http = MagicMock()
    http.request.return_value = _resp(200, {"id": "app-1"})
    ud = UserData(first_name="Ana", last_name="Lima", address_line_1="1 Main St", address_line_4="LS1 4AP")

    _client(http).push_applicant_attributes("app-1", ud)

    method, path = http.request.call_args.args
    assert (method, path) == ("PUT", "applicants/app-1")
    assert http.request.call_args.kwargs["json"] == {
        "first_name": "Ana",
        "last_name": "Lima",
        "address": {"line1": "1 Main St", "postcode": "LS1 4AP"},
    }


def test_push_with_nothing_to_send_skips_request():
    http = MagicMock()
    _client(http).push_applicant_attributes("app-1", UserData(document_number="X1"))
    http.request.assert_not_called()


def test_address_without_postcode_is_left_out():
    body = build_applicant_update(UserData(first_name="Ana", address_line_1="1 Main St"))
    assert body == {"first_name": "Ana"}
