"""Python SDK for the NOPE safety API: risk evaluation, crisis screening and webhook verification."""

__version__ = "0.1.0"

from nope_sdk.client import NopeClient, create_client_from_env
from nope_sdk.config import NopeSettings, load_settings
from nope_sdk.errors import ErrorKind, NopeError
from nope_sdk.types import (
    IMMINENCE_SCORES,
    SEVERITY_SCORES,
    CrisisResource,
    DomainAssessment,
    EvaluateConfig,
    EvaluateResponse,
    GlobalAssessment,
    Imminence,
    LegalFlags,
    Message,
    ScreenConfig,
    ScreenResponse,
    Severity,
    calculate_speaker_imminence,
    calculate_speaker_severity,
    has_third_party_risk,
)
from nope_sdk.webhook import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignedWebhook,
    WebhookPayload,
    canonical_json,
    sign_webhook,
    verify_webhook,
    verify_webhook_from_env,
    verify_webhook_headers,
)

__all__ = [
    "CrisisResource",
    "DomainAssessment",
    "ErrorKind",
    "EvaluateConfig",
    "EvaluateResponse",
    "GlobalAssessment",
    "IMMINENCE_SCORES",
    "Imminence",
    "LegalFlags",
    "Message",
    "NopeClient",
    "NopeError",
    "NopeSettings",
    "SEVERITY_SCORES",
    "SIGNATURE_HEADER",
    "ScreenConfig",
    "ScreenResponse",
    "Severity",
    "SignedWebhook",
    "TIMESTAMP_HEADER",
    "WebhookPayload",
    "__version__",
    "calculate_speaker_imminence",
    "calculate_speaker_severity",
    "canonical_json",
    "create_client_from_env",
    "has_third_party_risk",
    "load_settings",
    "sign_webhook",
    "verify_webhook",
    "verify_webhook_from_env",
    "verify_webhook_headers",
]
