from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

class FlowRequest(BaseModel):
    # Caller-persisted state from the previous round-trip (empty on first call)
    sharedState: Dict[str, Any] = Field(default_factory=dict)
    # Resume signal: true once the capture widget reported completion
    resumed: bool = False
    ssoToken: Optional[str] = None

class CapturePayload(BaseModel):
    captureToken: str
    widgetConfig: Dict[str, Any]
    script: str

class FlowResponse(BaseModel):
    type: Literal["capture", "outcome"]
    outcome: Optional[Literal["true", "error"]] = None
    capture: Optional[CapturePayload] = None
    sharedState: Dict[str, Any] = Field(default_factory=dict)

class OutcomeInfo(BaseModel):
    id: str
    label: str

class OutcomesResponse(BaseModel):
    outcomes: List[OutcomeInfo]
