from enum import Enum

# Shared-state keys (caller-persisted bag carried across round-trips)
APPLICANT_ID = "applicantId"
OBJECT_ATTRIBUTES = "objectAttributes"
USERNAME = "username"
REALM = "realm"
EXCEPTION_MESSAGE = "exceptionMessage"

# Outbound attribute carrying the authenticated username
USER_NAME_ATTRIBUTE = "userName"

# Placeholder account a session token resolves to before login
ANONYMOUS_USER = "anonymous"


class FlowPhase(str, Enum):
    # Interaction Surface: first call, no resume signal yet
    # Side effects: applicant + capture token (provider only)
    AWAITING_CAPTURE = "AWAITING_CAPTURE"

    # Interaction Surface: capture widget completed, caller resumed
    # Side effects: merge, identity writes, check creation
    RESUMED = "RESUMED"

    @classmethod
    def from_signal(cls, resumed: bool) -> "FlowPhase":
        return cls.RESUMED if resumed else cls.AWAITING_CAPTURE


class Outcome(str, Enum):
    # Values are the outcome ids the calling tree wires on
    SUCCESS = "true"
    ERROR = "error"

    @property
    def label(self) -> str:
        return "True" if self is Outcome.SUCCESS else "Error"
