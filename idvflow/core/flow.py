"""
Registration flow
-----------------
One call per HTTP round-trip. Everything the flow needs between calls travels
in the caller-held shared state; nothing is kept in process.

  AWAITING_CAPTURE: create applicant -> capture token -> capture instruction
  RESUMED:          merge (JIT and/or step-up) -> write applicant id ->
                    create check -> write check id -> SUCCESS

Any failure terminates in ERROR with the description under exceptionMessage.
Identity writes made before the failure are not rolled back.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from idvflow.core import state_machine as sm
from idvflow.core.config import FlowConfig
from idvflow.core.errors import FlowStateError, IdentityNotFound
from idvflow.core.merge import applicant_id_from, provisioning_merge, step_up_merge
from idvflow.core.state_machine import FlowPhase, Outcome
from idvflow.observability.logging import log
import idvflow.observability.metrics as metrics
from idvflow.provider.widget import build_setup_script, build_widget_config


@dataclass
class FlowContext:
    shared_state: Dict[str, Any] = field(default_factory=dict)
    resumed: bool = False
    session_token: Optional[str] = None


@dataclass(frozen=True)
class CaptureInstruction:
    capture_token: str
    widget_config: Dict[str, Any]
    script: str


@dataclass
class FlowResult:
    shared_state: Dict[str, Any]
    capture: Optional[CaptureInstruction] = None
    outcome: Optional[Outcome] = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None


def describe_error(exc: BaseException) -> str:
    msg = str(exc)
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


class RegistrationFlow:
    def __init__(self, config: FlowConfig, provider, identities):
        self.config = config
        self.provider = provider
        self.identities = identities

    def process(self, ctx: FlowContext) -> FlowResult:
        shared_state = dict(ctx.shared_state or {})
        phase = FlowPhase.from_signal(ctx.resumed)

        try:
            if phase is FlowPhase.AWAITING_CAPTURE:
                return self._issue_capture(shared_state)
            return self._complete(shared_state, ctx.session_token)
        except Exception as e:
            return self._fail(shared_state, phase, e)

    # ------------------------------------------------------------------
    # AWAITING_CAPTURE
    # ------------------------------------------------------------------
    def _issue_capture(self, shared_state: Dict[str, Any]) -> FlowResult:
        applicant = self.provider.create_applicant()
        capture_token = self.provider.request_capture_token(applicant)

        shared_state[sm.APPLICANT_ID] = applicant.id

        widget_config = build_widget_config(self.config, capture_token)
        instruction = CaptureInstruction(
            capture_token=capture_token,
            widget_config=widget_config,
            script=build_setup_script(self.config, widget_config),
        )
        metrics.increment_capture_issued()
        log(event="idv_capture_issued", applicantId=applicant.id, captureToken=capture_token)
        return FlowResult(shared_state=shared_state, capture=instruction)

    # ------------------------------------------------------------------
    # RESUMED
    # ------------------------------------------------------------------
    def _complete(self, shared_state: Dict[str, Any], session_token: Optional[str]) -> FlowResult:
        applicant_id = applicant_id_from(shared_state)
        log(
            event="idv_resumed",
            applicantId=applicant_id,
            jitProvisioning=self.config.jit_provisioning,
            hasSessionToken=bool(session_token),
        )

        # Registration (new user)
        if self.config.jit_provisioning:
            provisioning_merge(shared_state, self.provider, self.config)

        # Step-up (existing user)
        if session_token:
            session_identity = self.identities.resolve_by_session_token(session_token)
            step_up_merge(shared_state, session_identity, self.provider, self.config)

        identity = self._flow_identity(shared_state)
        identity.set_attributes({self.config.applicant_id_attribute: applicant_id})
        identity.store()

        shared_state.pop(sm.APPLICANT_ID, None)

        check = self.provider.create_check(applicant_id)
        identity.set_attributes({self.config.check_id_attribute: check.id})
        identity.store()

        log(event="idv_check_created", applicantId=applicant_id, checkId=check.id)
        metrics.increment_outcome(Outcome.SUCCESS.value)
        return FlowResult(shared_state=shared_state, outcome=Outcome.SUCCESS)

    def _flow_identity(self, shared_state: Dict[str, Any]):
        username = shared_state.get(sm.USERNAME)
        realm = shared_state.get(sm.REALM)
        if not username:
            raise FlowStateError("No username in shared state")
        try:
            return self.identities.resolve_by_username_realm(username, realm)
        except IdentityNotFound:
            if not self.config.jit_provisioning:
                raise
            attributes = shared_state.get(sm.OBJECT_ATTRIBUTES) or {}
            return self.identities.create(username, realm, attributes)

    def _fail(self, shared_state: Dict[str, Any], phase: FlowPhase, exc: Exception) -> FlowResult:
        applicant_id = shared_state.pop(sm.APPLICANT_ID, None)
        shared_state[sm.EXCEPTION_MESSAGE] = describe_error(exc)
        log(
            event="idv_flow_error",
            phase=phase.value,
            applicantId=applicant_id,
            errorType=type(exc).__name__,
            error=str(exc)[:500],
        )
        metrics.increment_outcome(Outcome.ERROR.value)
        return FlowResult(shared_state=shared_state, outcome=Outcome.ERROR)
