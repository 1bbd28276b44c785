"""
Capture widget (Onfido Web SDK) instruction payload.

The caller renders the setup script; when the SDK reports completion the
script fires an `idv:complete` DOM event, which is the caller's cue to resume
the flow with the resume signal set.
"""
import json
from typing import Any, Dict

from idvflow.core.config import BiometricCheck, FlowConfig

CONTAINER_ID = "onfido-mount"
COMPLETE_EVENT = "idv:complete"

FACE_VARIANTS = {
    BiometricCheck.SELFIE: "standard",
    BiometricCheck.LIVE: "video",
}

# %-style so the JS braces need no escaping
SETUP_DOM_SCRIPT = """(function () {
  var css = document.createElement('link');
  css.rel = 'stylesheet';
  css.href = %(css_url)s;
  document.head.appendChild(css);

  var mount = document.getElementById(%(container_id)s);
  if (!mount) {
    mount = document.createElement('div');
    mount.id = %(container_id)s;
    document.body.appendChild(mount);
  }

  var sdk = document.createElement('script');
  sdk.src = %(js_url)s;
  sdk.onload = function () {
    var options = %(sdk_config)s;
    options.onComplete = function (data) {
      window.dispatchEvent(new CustomEvent(%(complete_event)s, {detail: data}));
    };
    window.onfidoOut = Onfido.init(options);
  };
  document.body.appendChild(sdk);
})();
"""


def build_widget_config(config: FlowConfig, capture_token: str) -> Dict[str, Any]:
    steps = [
        {
            "type": "welcome",
            "options": {"title": config.welcome_message},
        },
        "document",
    ]
    variant = FACE_VARIANTS.get(config.biometric_check)
    if variant:
        steps.append({"type": "face", "options": {"requestedVariant": variant}})
    steps.append({"type": "complete", "options": {"message": config.help_message}})

    return {
        "token": capture_token,
        "containerId": CONTAINER_ID,
        "useModal": False,
        "steps": steps,
    }


def build_setup_script(config: FlowConfig, widget_config: Dict[str, Any]) -> str:
    return SETUP_DOM_SCRIPT % {
        "css_url": json.dumps(config.css_url),
        "js_url": json.dumps(config.js_url),
        "container_id": json.dumps(CONTAINER_ID),
        "complete_event": json.dumps(COMPLETE_EVENT),
        "sdk_config": json.dumps(widget_config),
    }
