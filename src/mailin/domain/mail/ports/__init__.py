"""Ports (interfaces) consumed by the session orchestrator."""

from .authentication_port import AuthenticationValidatorPort
from .language_detector_port import LanguageDetectorPort
from .staging_store_port import StagedArtifact, StagingError, StagingStorePort, StagingWriter
from .webhook_port import DeliveryOutcome, WebhookDispatcherPort

__all__ = [
    "AuthenticationValidatorPort",
    "LanguageDetectorPort",
    "StagedArtifact",
    "StagingError",
    "StagingStorePort",
    "StagingWriter",
    "DeliveryOutcome",
    "WebhookDispatcherPort",
]
