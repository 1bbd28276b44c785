import random
import time
from typing import Any, Dict, List, Optional

import httpx

from idvflow.core.config import BiometricCheck, FlowConfig
from idvflow.core.errors import ProviderError
from idvflow.observability.logging import log
import idvflow.observability.metrics as metrics
from idvflow.store.models import Applicant, Check, UserData

# Onfido REST API v3
# Auth header: "Authorization: Token token=<api token>"
RETRYABLE_STATUS = (429, 500, 502, 503, 504)

# Applicants are created before any document is seen
PLACEHOLDER_FIRST_NAME = "Pending"
PLACEHOLDER_LAST_NAME = "Applicant"

REPORTS_BY_BIOMETRIC = {
    BiometricCheck.NONE: ["document"],
    BiometricCheck.SELFIE: ["document", "facial_similarity_photo"],
    BiometricCheck.LIVE: ["document", "facial_similarity_video"],
}


def _sleep_backoff(attempt: int, retry_after: Optional[float] = None) -> None:
    """Small bounded exponential backoff with jitter."""
    if retry_after is not None:
        time.sleep(min(retry_after, 5.0))
        return
    base = min(2.0, 0.35 * (2 ** attempt))
    time.sleep(base + random.uniform(0.0, 0.2))


def _retry_after(resp: httpx.Response) -> Optional[float]:
    if "retry-after" not in resp.headers:
        return None
    try:
        return float(resp.headers["retry-after"])
    except ValueError:
        return None


def build_applicant_update(user_data: UserData) -> Dict[str, Any]:
    """Applicant PUT body from local UserData; empty fields are left out."""
    body: Dict[str, Any] = {}
    for k in ("first_name", "last_name"):
        v = user_data.get(k)
        if v:
            body[k] = v
    if user_data.date_of_birth:
        body["dob"] = user_data.date_of_birth

    address = {
        "line1": user_data.address_line_1,
        "line2": user_data.address_line_2,
        "town": user_data.address_line_3,
        "postcode": user_data.address_line_4,
        "state": user_data.address_line_5,
        "country": user_data.nationality,
    }
    address = {k: v for k, v in address.items() if v}
    # Onfido rejects an address without a postcode
    if address.get("line1") and address.get("postcode"):
        body["address"] = address
    return body


class OnfidoClient:
    def __init__(self, config: FlowConfig, http: Optional[httpx.Client] = None):
        self._config = config
        base_url = config.api_base_url if config.api_base_url.endswith("/") else config.api_base_url + "/"
        self._http = http or httpx.Client(base_url=base_url, timeout=config.request_timeout_sec)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Token token={self._config.api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send one API call with bounded retries on 429/5xx and timeouts.
        Raises ProviderError with the status code; response bodies are only logged.
        """
        attempts = max(1, int(self._config.max_retries) + 1)
        last_error = "no attempt made"
        status_code = None

        for attempt in range(attempts):
            start = time.time()
            try:
                resp = self._http.request(method, path, headers=self._headers(), **kwargs)
            except httpx.TimeoutException as e:
                last_error = f"timeout: {type(e).__name__}"
                status_code = None
                log(event="onfido_request_retry", method=method, path=path, attempt=attempt + 1, error=last_error)
                if attempt + 1 < attempts:
                    _sleep_backoff(attempt)
                continue
            except httpx.HTTPError as e:
                log(event="onfido_request_failed", method=method, path=path, errorType=type(e).__name__, error=str(e)[:300])
                raise ProviderError(f"Onfido {method} {path} failed: {type(e).__name__}") from e
            finally:
                metrics.record_provider_latency(int((time.time() - start) * 1000))

            if 200 <= resp.status_code < 300:
                if resp.status_code == 204 or not resp.content:
                    return {}
                try:
                    return resp.json()
                except ValueError as e:
                    raise ProviderError(f"Onfido {method} {path} returned invalid JSON", status_code=resp.status_code) from e

            status_code = resp.status_code
            last_error = f"status {resp.status_code}"
            if resp.status_code in RETRYABLE_STATUS and attempt + 1 < attempts:
                log(event="onfido_request_retry", method=method, path=path, attempt=attempt + 1, statusCode=resp.status_code)
                _sleep_backoff(attempt, retry_after=_retry_after(resp))
                continue

            log(
                event="onfido_request_failed",
                method=method,
                path=path,
                statusCode=resp.status_code,
                responseText=(resp.text or "")[:500],
            )
            break

        raise ProviderError(f"Onfido {method} {path} failed ({last_error})", status_code=status_code)

    def create_applicant(self) -> Applicant:
        data = self._request(
            "POST", "applicants",
            json={"first_name": PLACEHOLDER_FIRST_NAME, "last_name": PLACEHOLDER_LAST_NAME},
        )
        applicant_id = data.get("id")
        if not applicant_id:
            raise ProviderError("Onfido applicant response carried no id")
        return Applicant(id=applicant_id)

    def request_capture_token(self, applicant: Applicant) -> str:
        data = self._request(
            "POST", "sdk_token",
            json={"applicant_id": applicant.id, "referrer": self._config.referrer},
        )
        token = data.get("token")
        if not token:
            raise ProviderError("Onfido sdk_token response carried no token")
        return token

    def create_check(self, applicant_id: str) -> Check:
        reports = REPORTS_BY_BIOMETRIC[self._config.biometric_check]
        data = self._request("POST", "checks", json={"applicant_id": applicant_id, "report_names": reports})
        check_id = data.get("id")
        if not check_id:
            raise ProviderError("Onfido check response carried no id")
        return Check(id=check_id)

    def _list_documents(self, applicant_id: str) -> List[dict]:
        data = self._request("GET", "documents", params={"applicant_id": applicant_id})
        docs = data.get("documents") or []
        return [d for d in docs if isinstance(d, dict) and d.get("id")]

    def fetch_extracted_attributes(self, applicant_id: str) -> Optional[UserData]:
        """Autofill: extracted data of the applicant's most recent document, or None."""
        docs = self._list_documents(applicant_id)
        if not docs:
            return None
        docs.sort(key=lambda d: d.get("created_at") or "", reverse=True)
        data = self._request("POST", "extractions", json={"document_id": docs[0]["id"]})
        extracted = data.get("extracted_data") or {}
        user_data = UserData.from_extracted(extracted)
        if user_data is not None and not user_data.document_type:
            doc_type = (data.get("document_classification") or {}).get("document_type")
            if doc_type:
                user_data = UserData.from_extracted({**extracted, "document_type": doc_type})
        return user_data

    def push_applicant_attributes(self, applicant_id: str, user_data: UserData) -> None:
        body = build_applicant_update(user_data)
        if not body:
            return
        self._request("PUT", f"applicants/{applicant_id}", json=body)

    def close(self) -> None:
        self._http.close()
