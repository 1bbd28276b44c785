#!/usr/bin/env python3
import sys
import os

print("Running preflight check...")
try:
    # Set dummy env vars to avoid KeyErrors during config load if any
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import idvflow.main
    print("Import idvflow.main: OK")

    from idvflow.core.config import FlowConfig
    from idvflow.core.errors import ConfigurationError
    try:
        cfg = FlowConfig.from_settings()
        print(f"Flow config: OK (jit={cfg.jit_provisioning} biometric={cfg.biometric_check.value} "
              f"mapping_keys={len(cfg.attribute_mapping)})")
    except ConfigurationError as e:
        print(f"Flow config: NOT READY ({e})")
        sys.exit(2)

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
