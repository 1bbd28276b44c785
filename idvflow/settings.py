import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Identity store key layout (Redis)
    IDENTITY_KEY_PREFIX: str = os.getenv("IDENTITY_KEY_PREFIX", "identity:")
    SESSION_KEY_PREFIX: str = os.getenv("SESSION_KEY_PREFIX", "sso:")

    # Onfido provider
    ONFIDO_API_TOKEN: str = os.getenv("ONFIDO_API_TOKEN", "")
    ONFIDO_API_BASE_URL: str = os.getenv("ONFIDO_API_BASE_URL", "https://api.onfido.com/v3/")
    ONFIDO_REFERRER: str = os.getenv("ONFIDO_REFERRER", "*://*/*")
    # numeric knobs stay raw; FlowConfig.from_settings validates them
    ONFIDO_REQUEST_TIMEOUT_SEC: str = os.getenv("ONFIDO_REQUEST_TIMEOUT_SEC", "10")
    ONFIDO_MAX_RETRIES: str = os.getenv("ONFIDO_MAX_RETRIES", "2")

    # Flow behaviour
    JIT_PROVISIONING: bool = os.getenv("JIT_PROVISIONING", "false").lower() == "true"
    BIOMETRIC_CHECK: str = os.getenv("BIOMETRIC_CHECK", "None")
    APPLICANT_ID_ATTRIBUTE: str = os.getenv("APPLICANT_ID_ATTRIBUTE", "title")
    CHECK_ID_ATTRIBUTE: str = os.getenv("CHECK_ID_ATTRIBUTE", "description")
    # JSON object {local attribute: provider field}; empty means built-in table
    ATTRIBUTE_MAPPING: str = os.getenv("ATTRIBUTE_MAPPING", "")

    # Capture widget presentation
    WELCOME_MESSAGE: str = os.getenv("WELCOME_MESSAGE", "Identity Verification")
    HELP_MESSAGE: str = os.getenv("HELP_MESSAGE", "Thank you for using Onfido for Identity Verification")
    ONFIDO_JS_URL: str = os.getenv(
        "ONFIDO_JS_URL", "https://assets.onfido.com/web-sdk-releases/6.7.1/onfido.min.js"
    )
    ONFIDO_CSS_URL: str = os.getenv(
        "ONFIDO_CSS_URL", "https://assets.onfido.com/web-sdk-releases/6.7.1/style.css"
    )

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
