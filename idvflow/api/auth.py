from fastapi import Header, HTTPException
from idvflow.settings import settings


def require_api_key(x_api_key: str = Header(default="", alias="x-api-key")):
    """
    Guard for the flow endpoint, which the calling tree runtime invokes.
    - If API_KEY env is empty: allow all requests.
    - If API_KEY env is set: require matching x-api-key header.
    """
    if not getattr(settings, "API_KEY", ""):
        return
    if x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Secure default: if enabled but no key configured, reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")
