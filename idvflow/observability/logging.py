import json
import time
from idvflow.settings import settings

# PII-bearing fields that never reach stdout in clear text (if redaction enabled)
SENSITIVE_KEYS = {
    "captureToken", "token", "attributes", "objectAttributes", "userData",
    "first_name", "last_name", "date_of_birth", "username",
}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    if isinstance(v, (list, tuple, set)):
        return f"[REDACTED:{len(v)}items]"
    return v

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_PII_REDACTION:
        clean_fields = {}
        for k, v in fields.items():
            if k in SENSITIVE_KEYS:
                clean_fields[k] = _redact_value(v)
            elif isinstance(v, dict):
                # Redact nested sensitive keys only
                clean_fields[k] = {sk: (_redact_value(sv) if sk in SENSITIVE_KEYS else sv) for sk, sv in v.items()}
            else:
                clean_fields[k] = v
        payload.update(clean_fields)
    else:
        payload.update(fields)

    print(json.dumps(payload, ensure_ascii=False, default=str))
