"""
Attribute merge
---------------
Builds the outbound attribute set that downstream provisioning consumes,
from three sources:
  1. attributes already carried in shared state (kept unless overwritten),
  2. UserData (provider document data, or the local identity's attributes),
  3. bookkeeping fields (username, applicant id), written last so provider
     data can never shadow them.
"""
from typing import Any, Dict, Mapping, Optional

from idvflow.core import state_machine as sm
from idvflow.core.config import FlowConfig
from idvflow.core.errors import FlowStateError, IdentityStoreError
from idvflow.observability.logging import log
from idvflow.store.models import UserData


def _prior_attributes(shared_state: Mapping[str, Any]) -> Dict[str, Any]:
    old = shared_state.get(sm.OBJECT_ATTRIBUTES)
    if not isinstance(old, Mapping):
        return {}
    return dict(old)


def applicant_id_from(shared_state: Mapping[str, Any]) -> str:
    applicant_id = shared_state.get(sm.APPLICANT_ID)
    if not applicant_id:
        raise FlowStateError("No applicant id in shared state; the capture step must run first")
    return str(applicant_id)


def merge_attributes(
    prior: Mapping[str, Any],
    user_data: Optional[UserData],
    mapping: Mapping[str, str],
    *,
    username: Optional[str],
    applicant_id: str,
    applicant_id_attribute: str,
) -> Dict[str, Any]:
    out = dict(prior)
    if user_data is None:
        return out

    out.update(user_data.as_attributes(mapping))

    out[sm.USER_NAME_ATTRIBUTE] = username
    out[applicant_id_attribute] = applicant_id
    return out


def set_object_attributes(shared_state: Dict[str, Any], user_data: Optional[UserData], provider, config: FlowConfig) -> Dict[str, Any]:
    """Merge into shared_state[objectAttributes]; returns the outbound set."""
    applicant_id = applicant_id_from(shared_state)
    prior = _prior_attributes(shared_state)

    if user_data is not None:
        # Back-fill the applicant record before merging forward
        provider.push_applicant_attributes(applicant_id, user_data)

    outbound = merge_attributes(
        prior,
        user_data,
        config.attribute_mapping,
        username=shared_state.get(sm.USERNAME),
        applicant_id=applicant_id,
        applicant_id_attribute=config.applicant_id_attribute,
    )
    shared_state[sm.OBJECT_ATTRIBUTES] = outbound
    return outbound


def provisioning_merge(shared_state: Dict[str, Any], provider, config: FlowConfig) -> Dict[str, Any]:
    applicant_id = applicant_id_from(shared_state)
    user_data = provider.fetch_extracted_attributes(applicant_id)
    outbound = set_object_attributes(shared_state, user_data, provider, config)
    log(event="idv_jit_merge", applicantId=applicant_id, extracted=user_data is not None, attributeCount=len(outbound))
    return outbound


def step_up_merge(shared_state: Dict[str, Any], identity, provider, config: FlowConfig) -> Optional[Dict[str, Any]]:
    """
    Existing-user path. Skipped for the anonymous account. A failed write of
    the applicant id is logged and not fatal: the resumed flow writes the same
    value onto the flow's own identity afterwards.
    """
    if identity.name == sm.ANONYMOUS_USER:
        log(event="idv_stepup_skipped_anonymous")
        return None

    applicant_id = applicant_id_from(shared_state)
    try:
        attributes = identity.read_attributes(config.attribute_mapping.keys())
        user_data = UserData.from_identity_attributes(attributes, config.attribute_mapping)

        outbound = set_object_attributes(shared_state, user_data, provider, config)

        identity.set_attributes({config.applicant_id_attribute: applicant_id})
        identity.store()
    except IdentityStoreError as e:
        log(
            event="idv_stepup_store_failed",
            applicantId=applicant_id,
            attribute=config.applicant_id_attribute,
            errorType=type(e).__name__,
            error=str(e)[:300],
        )
        return None

    log(event="idv_stepup_merge", applicantId=applicant_id, attributeCount=len(outbound))
    return outbound
