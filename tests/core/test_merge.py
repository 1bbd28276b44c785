from unittest.mock import MagicMock, patch

import pytest

from idvflow.core.config import DEFAULT_ATTRIBUTE_MAPPING, FlowConfig
from idvflow.core.errors import FlowStateError
from idvflow.core.merge import merge_attributes, provisioning_merge, set_object_attributes
from idvflow.store.models import UserData

MAPPING = dict(DEFAULT_ATTRIBUTE_MAPPING)


def test_absent_user_data_is_passthrough():
    prior = {"mail": "a@example.com", "title": "old"}
    out = merge_attributes(prior, None, MAPPING, username="alice", applicant_id="app-1", applicant_id_attribute="title")
    assert out == prior
    assert out is not prior


def test_provider_fields_overwrite_prior_keys():
    prior = {"sn": "Old", "mail": "a@example.com"}
    ud = UserData(last_name="New")
    out = merge_attributes(prior, ud, MAPPING, username="alice", applicant_id="app-1", applicant_id_attribute="title")
    assert out["sn"] == "New"
    assert out["mail"] == "a@example.com"


def test_unmapped_fields_are_dropped():
    ud = UserData(first_name="Ana", document_number="X123")
    out = merge_attributes({}, ud, MAPPING, username="alice", applicant_id="app-1", applicant_id_attribute="title")
    assert "document_number" not in out
    assert "X123" not in out.values()


def test_bookkeeping_fields_cannot_be_shadowed():
    mapping = {"userName": "first_name", "title": "last_name", "cn": "first_name"}
    ud = UserData(first_name="Ana", last_name="Lima")
    out = merge_attributes({}, ud, mapping, username="alice", applicant_id="app-1", applicant_id_attribute="title")
    assert out["userName"] == "alice"
    assert out["title"] == "app-1"
    assert out["cn"] == "Ana"


def test_mapping_lookup_is_case_sensitive():
    mapping = {"cn": "First_Name"}
    out = merge_attributes({}, UserData(first_name="Ana"), mapping, username="alice", applicant_id="a", applicant_id_attribute="title")
    assert "cn" not in out


def test_translation_is_idempotent():
    ud = UserData(first_name="Ana", address_line_1="1 Main St", address_line_4="LS1")
    kwargs = dict(username="alice", applicant_id="app-1", applicant_id_attribute="title")
    assert merge_attributes({}, ud, MAPPING, **kwargs) == merge_attributes({}, ud, MAPPING, **kwargs)


def test_set_object_attributes_pushes_before_writing_state():
    calls = []
    provider = MagicMock()
    provider.push_applicant_attributes.side_effect = lambda *a: calls.append("push")
    state = {"applicantId": "app-1", "username": "alice", "objectAttributes": {"mail": "m"}}
    ud = UserData(first_name="Ana")

    out = set_object_attributes(state, ud, provider, FlowConfig(api_token="t"))

    assert calls == ["push"]
    assert state["objectAttributes"] is out
    assert out["cn"] == "Ana"


def test_set_object_attributes_ignores_non_mapping_prior():
    state = {"applicantId": "app-1", "username": "alice", "objectAttributes": "garbage"}
    out = set_object_attributes(state, None, MagicMock(), FlowConfig(api_token="t"))
    assert out == {}


@patch("idvflow.core.merge.log")
def test_provisioning_merge_requires_applicant_id(mock_log):
    with pytest.raises(FlowStateError):
        provisioning_merge({"username": "alice"}, MagicMock(), FlowConfig(api_token="t"))


@patch("idvflow.core.merge.log")
def test_provisioning_merge_uses_stored_applicant(mock_log):
    provider = MagicMock()
    provider.fetch_extracted_attributes.return_value = None
    state = {"applicantId": "app-9", "username": "alice", "objectAttributes": {"mail": "m"}}

    out = provisioning_merge(state, provider, FlowConfig(api_token="t"))

    provider.fetch_extracted_attributes.assert_called_once_with("app-9")
    assert out == {"mail": "m"}
    assert mock_log.call_args.kwargs["extracted"] is False
