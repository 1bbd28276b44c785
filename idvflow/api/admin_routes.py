from fastapi import APIRouter, Depends, HTTPException

from idvflow.api.auth import require_admin
from idvflow.core.errors import IdentityNotFound
from idvflow.core.state_machine import Outcome
from idvflow.settings import settings
from idvflow.store.identity_repo import RedisIdentityStore
import idvflow.observability.metrics as metrics

router = APIRouter(prefix="/admin", tags=["admin"])

@router.get("/identity/{realm}/{username}")
def get_identity_verification(realm: str, username: str, _=Depends(require_admin)):
    """Applicant/check correlation ids recorded on an identity."""
    try:
        identity = RedisIdentityStore().resolve_by_username_realm(username, realm)
    except IdentityNotFound:
        raise HTTPException(status_code=404, detail="Identity not found")
    attrs = identity.read_attributes([settings.APPLICANT_ID_ATTRIBUTE, settings.CHECK_ID_ATTRIBUTE])
    return {
        "username": identity.name,
        "realm": identity.realm,
        "applicantId": attrs.get(settings.APPLICANT_ID_ATTRIBUTE),
        "checkId": attrs.get(settings.CHECK_ID_ATTRIBUTE),
    }

@router.get("/metrics")
def get_metrics(_=Depends(require_admin)):
    return metrics.snapshot([o.value for o in Outcome])
