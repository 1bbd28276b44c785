from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, Mapping, Optional

@dataclass(frozen=True)
class Applicant:
    id: str

@dataclass(frozen=True)
class Check:
    # Correlation token only; the verdict is fetched elsewhere
    id: str

@dataclass(frozen=True)
class UserData:
    """Normalized identity fields, keyed by the provider's field names.

    Built in one go from either the provider's extracted document data or the
    local identity's attributes. A missing source is represented by `None`
    at the call site, never by an empty UserData.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    document_type: Optional[str] = None
    document_number: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    address_line_3: Optional[str] = None
    address_line_4: Optional[str] = None
    address_line_5: Optional[str] = None

    @classmethod
    def field_names(cls) -> Iterable[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def _from_values(cls, values: Mapping[str, Any]) -> Optional["UserData"]:
        kwargs = {}
        for name in cls.field_names():
            v = values.get(name)
            if v is None:
                continue
            v = str(v).strip()
            if v:
                kwargs[name] = v
        if not kwargs:
            return None
        return cls(**kwargs)

    @classmethod
    def from_extracted(cls, extracted: Optional[Mapping[str, Any]]) -> Optional["UserData"]:
        """From an Onfido `extracted_data` object. Unknown keys are ignored."""
        if not isinstance(extracted, Mapping):
            return None
        return cls._from_values(extracted)

    @classmethod
    def from_identity_attributes(cls, attributes: Mapping[str, Any], mapping: Mapping[str, str]) -> Optional["UserData"]:
        """
        From local attributes read through the mapping (local name -> field).
        When several local attributes feed the same field, the first non-empty
        one in mapping order is used.
        """
        values: Dict[str, Any] = {}
        for local_name, field_name in mapping.items():
            if field_name in values:
                continue
            v = attributes.get(local_name)
            if isinstance(v, (list, tuple, set)):
                v = next(iter(v), None)
            if v is not None and str(v).strip():
                values[field_name] = v
        return cls._from_values(values)

    def get(self, field_name: str) -> Optional[str]:
        # Exact, case-sensitive lookup; unknown names resolve to None
        if field_name not in self.field_names():
            return None
        return getattr(self, field_name)

    def as_attributes(self, mapping: Mapping[str, str]) -> Dict[str, str]:
        """Translate present fields to local attribute names. Unmapped fields are dropped."""
        out: Dict[str, str] = {}
        for local_name, field_name in mapping.items():
            v = self.get(field_name)
            if v is not None:
                out[local_name] = v
        return out
