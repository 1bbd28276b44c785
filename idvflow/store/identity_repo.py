import json
from typing import Any, Dict, Iterable, Mapping, Optional

from redis.exceptions import RedisError

from idvflow.core.errors import IdentityNotFound, IdentityStoreError
from idvflow.observability.logging import log
from idvflow.settings import settings
from idvflow.store.redis_conn import get_redis


def _identity_key(username: str, realm: str) -> str:
    return f"{settings.IDENTITY_KEY_PREFIX}{realm}:{username}"


def _session_key(token: str) -> str:
    return f"{settings.SESSION_KEY_PREFIX}{token}"


def _to_redis_value(v: Any) -> str:
    if isinstance(v, str):
        return v
    if isinstance(v, (set, tuple)):
        v = sorted(v) if isinstance(v, set) else list(v)
    return json.dumps(v)


def _from_redis_value(raw: str) -> Any:
    """Multi-valued attributes are stored as JSON lists; everything else is returned as-is."""
    if not raw.startswith("["):
        return raw
    try:
        decoded = json.loads(raw)
    except ValueError:
        return raw
    return decoded if isinstance(decoded, list) else raw


def _store_failed(event: str, e: RedisError, **fields) -> None:
    # Backend detail (host, port, reason) stays in the operator log
    log(event=event, errorType=type(e).__name__, error=str(e)[:300], **fields)


class Identity:
    """
    A local identity backed by one Redis hash.
    Writes are buffered by set_attributes() and only hit Redis on store().
    """

    def __init__(self, username: str, realm: str):
        self._username = username
        self._realm = realm
        self._pending: Dict[str, str] = {}

    @property
    def name(self) -> str:
        return self._username

    @property
    def realm(self) -> str:
        return self._realm

    @property
    def key(self) -> str:
        return _identity_key(self._username, self._realm)

    def read_attributes(self, names: Iterable[str]) -> Dict[str, Any]:
        names = list(dict.fromkeys(names))
        if not names:
            return {}
        try:
            values = get_redis().hmget(self.key, names)
        except RedisError as e:
            _store_failed("identity_read_failed", e, realm=self._realm)
            raise IdentityStoreError("Unable to read identity attributes") from e
        return {n: _from_redis_value(v) for n, v in zip(names, values) if v is not None}

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        for k, v in attributes.items():
            self._pending[k] = _to_redis_value(v)

    def store(self) -> None:
        if not self._pending:
            return
        try:
            get_redis().hset(self.key, mapping=self._pending)
        except RedisError as e:
            _store_failed("identity_store_failed", e, realm=self._realm, attributeNames=sorted(self._pending))
            raise IdentityStoreError("Unable to store identity attributes") from e
        self._pending = {}


class RedisIdentityStore:
    """Identity adapter: (username, realm) and session-token lookups."""

    def resolve_by_username_realm(self, username: Optional[str], realm: Optional[str]) -> Identity:
        if not username:
            raise IdentityNotFound("No username available to resolve the identity")
        realm = realm or "/"
        try:
            exists = get_redis().exists(_identity_key(username, realm))
        except RedisError as e:
            _store_failed("identity_lookup_failed", e, realm=realm)
            raise IdentityStoreError("Identity lookup failed") from e
        if not exists:
            raise IdentityNotFound("No identity for this flow in the configured realm")
        return Identity(username, realm)

    def resolve_by_session_token(self, token: str) -> Identity:
        try:
            raw = get_redis().get(_session_key(token))
        except RedisError as e:
            _store_failed("session_lookup_failed", e)
            raise IdentityStoreError("Session lookup failed") from e
        if not raw:
            raise IdentityNotFound("Session token is unknown or expired")
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise IdentityStoreError("Session record is not valid JSON") from e
        return self.resolve_by_username_realm(data.get("username"), data.get("realm"))

    def create(self, username: str, realm: Optional[str], attributes: Mapping[str, Any]) -> Identity:
        identity = Identity(username, realm or "/")
        identity.set_attributes(attributes)
        # An empty hash does not exist in Redis; always persist the username
        identity.set_attributes({"uid": username})
        identity.store()
        log(event="identity_provisioned", realm=identity.realm, attributeCount=len(attributes))
        return identity
