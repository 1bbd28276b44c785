"""
Flow configuration
------------------
Immutable snapshot of everything the verification flow needs, built once from
`settings` and handed to the flow at construction. Nothing in the flow reads
`settings` directly.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from idvflow.core.errors import ConfigurationError
from idvflow.settings import settings as default_settings

# Provider (UserData) field names
FIRST_NAME = "first_name"
LAST_NAME = "last_name"

# key: local (LDAP) attribute name, value: provider field it is filled from
DEFAULT_ATTRIBUTE_MAPPING = {
    "cn": FIRST_NAME,
    "givenName": FIRST_NAME,
    "sn": LAST_NAME,
    "postalAddress": "address_line_1",
    "city": "address_line_3",
    "postalCode": "address_line_4",
    "stateProvince": "address_line_5",
}


class BiometricCheck(str, Enum):
    NONE = "None"
    SELFIE = "Selfie"
    LIVE = "Live"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "BiometricCheck":
        value = (raw or "None").strip()
        for member in cls:
            if member.value.lower() == value.lower():
                return member
        raise ConfigurationError(f"Unknown biometric check mode: {value!r} (expected None, Selfie or Live)")


def _freeze(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


def parse_attribute_mapping(raw: Optional[str]) -> Mapping[str, str]:
    """Empty -> built-in table. Otherwise a JSON object of non-empty strings."""
    if not raw or not raw.strip():
        return _freeze(DEFAULT_ATTRIBUTE_MAPPING)
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"ATTRIBUTE_MAPPING is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("ATTRIBUTE_MAPPING must be a JSON object")
    for k, v in data.items():
        if not isinstance(v, str) or not k or not v:
            raise ConfigurationError(f"ATTRIBUTE_MAPPING entry {k!r} must map to a non-empty string")
    return _freeze(data)


def _positive_float(name: str, raw) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return value


def _non_negative_int(name: str, raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


@dataclass(frozen=True)
class FlowConfig:
    api_token: str
    api_base_url: str = "https://api.onfido.com/v3/"
    referrer: str = "*://*/*"
    request_timeout_sec: float = 10.0
    max_retries: int = 2
    jit_provisioning: bool = False
    biometric_check: BiometricCheck = BiometricCheck.NONE
    applicant_id_attribute: str = "title"
    check_id_attribute: str = "description"
    attribute_mapping: Mapping[str, str] = field(default_factory=lambda: _freeze(DEFAULT_ATTRIBUTE_MAPPING))
    welcome_message: str = "Identity Verification"
    help_message: str = "Thank you for using Onfido for Identity Verification"
    js_url: str = "https://assets.onfido.com/web-sdk-releases/6.7.1/onfido.min.js"
    css_url: str = "https://assets.onfido.com/web-sdk-releases/6.7.1/style.css"

    def __post_init__(self):
        if not self.api_token:
            raise ConfigurationError("ONFIDO_API_TOKEN is not set")
        if not self.applicant_id_attribute or not self.check_id_attribute:
            raise ConfigurationError("Applicant/check id attribute names must not be empty")

    @classmethod
    def from_settings(cls, s=None) -> "FlowConfig":
        s = s or default_settings
        return cls(
            api_token=s.ONFIDO_API_TOKEN,
            api_base_url=s.ONFIDO_API_BASE_URL,
            referrer=s.ONFIDO_REFERRER,
            request_timeout_sec=_positive_float("ONFIDO_REQUEST_TIMEOUT_SEC", s.ONFIDO_REQUEST_TIMEOUT_SEC),
            max_retries=_non_negative_int("ONFIDO_MAX_RETRIES", s.ONFIDO_MAX_RETRIES),
            jit_provisioning=bool(s.JIT_PROVISIONING),
            biometric_check=BiometricCheck.parse(s.BIOMETRIC_CHECK),
            applicant_id_attribute=s.APPLICANT_ID_ATTRIBUTE,
            check_id_attribute=s.CHECK_ID_ATTRIBUTE,
            attribute_mapping=parse_attribute_mapping(s.ATTRIBUTE_MAPPING),
            welcome_message=s.WELCOME_MESSAGE,
            help_message=s.HELP_MESSAGE,
            js_url=s.ONFIDO_JS_URL,
            css_url=s.ONFIDO_CSS_URL,
        )
