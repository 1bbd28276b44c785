import pytest
from dataclasses import FrozenInstanceError

from idvflow.core.config import DEFAULT_ATTRIBUTE_MAPPING
from idvflow.store.models import UserData


def test_from_extracted_ignores_unknown_and_blank_fields():
    ud = UserData.from_extracted({"first_name": "Ana", "last_name": "  ", "mrz_line1": "P<GBR", "address_line_1": "1 Main St"})
    assert ud == UserData(first_name="Ana", address_line_1="1 Main St")


def test_from_extracted_without_data_is_none():
    assert UserData.from_extracted({}) is None
    assert UserData.from_extracted(None) is None
    assert UserData.from_extracted({"unrelated": "x"}) is None


def test_from_identity_attributes_first_non_empty_wins():
    attrs = {"cn": ["Ana Maria"], "givenName": "Ana", "postalCode": "LS1 4AP"}
    ud = UserData.from_identity_attributes(attrs, DEFAULT_ATTRIBUTE_MAPPING)
    assert ud.first_name == "Ana Maria"
    assert ud.address_line_4 == "LS1 4AP"
    assert ud.last_name is None


def test_from_identity_attributes_nothing_mapped_is_none():
    assert UserData.from_identity_attributes({"mail": "x"}, DEFAULT_ATTRIBUTE_MAPPING) is None


def test_user_data_is_immutable():
    ud = UserData(first_name="Ana")
    with pytest.raises(FrozenInstanceError):
        ud.first_name = "Bob"


def test_as_attributes_fans_out_to_every_mapped_name():
    ud = UserData(first_name="Ana", address_line_5="Yorkshire")
    assert ud.as_attributes(DEFAULT_ATTRIBUTE_MAPPING) == {
        "cn": "Ana",
        "givenName": "Ana",
        "stateProvince": "Yorkshire",
    }


def test_get_unknown_field():
    assert UserData(first_name="Ana").get("FIRST_NAME") is None
