from functools import lru_cache

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from idvflow.api.auth import require_api_key
from idvflow.api.schemas import CapturePayload, FlowRequest, FlowResponse, OutcomeInfo, OutcomesResponse
from idvflow.core.config import FlowConfig
from idvflow.core.flow import FlowContext, FlowResult, RegistrationFlow
from idvflow.core.state_machine import Outcome
from idvflow.provider.onfido_client import OnfidoClient
from idvflow.store.identity_repo import RedisIdentityStore

router = APIRouter()


@lru_cache(maxsize=1)
def get_flow() -> RegistrationFlow:
    """Built once per process; raises ConfigurationError if settings are unusable."""
    config = FlowConfig.from_settings()
    return RegistrationFlow(config, OnfidoClient(config), RedisIdentityStore())


def to_response(result: FlowResult) -> FlowResponse:
    if result.capture is not None:
        return FlowResponse(
            type="capture",
            capture=CapturePayload(
                captureToken=result.capture.capture_token,
                widgetConfig=result.capture.widget_config,
                script=result.capture.script,
            ),
            sharedState=result.shared_state,
        )
    return FlowResponse(type="outcome", outcome=result.outcome.value, sharedState=result.shared_state)


@router.post("/idv/registration", response_model=FlowResponse, dependencies=[Depends(require_api_key)])
async def registration(req: FlowRequest, flow: RegistrationFlow = Depends(get_flow)):
    ctx = FlowContext(shared_state=req.sharedState, resumed=req.resumed, session_token=req.ssoToken or None)
    result = await run_in_threadpool(flow.process, ctx)
    return to_response(result)


@router.get("/idv/outcomes", response_model=OutcomesResponse)
def outcomes():
    return OutcomesResponse(outcomes=[OutcomeInfo(id=o.value, label=o.label) for o in Outcome])
