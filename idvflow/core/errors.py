from typing import Optional


class IdvError(Exception):
    """Base class for every failure the verification flow can terminate on."""


class ProviderError(IdvError):
    """Onfido unreachable, timed out, or rejected the request (non-2xx)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class IdentityStoreError(IdvError):
    """Resolution or persistence failure against the local identity store."""


class IdentityNotFound(IdentityStoreError):
    pass


class ConfigurationError(IdvError):
    """Missing or invalid required configuration (credential, mode, mapping)."""


class FlowStateError(IdvError):
    """Shared state is missing a value the resumed flow depends on."""
