"""Envelope assembly and HTTP delivery."""

from crashmap.delivery.client import UploadDeliveryClient, apply_failure_policy
from crashmap.delivery.envelope import EnvelopeBuilder, EnvelopeInputs
from crashmap.delivery.models import (
    DeliveryEnvelope,
    DeliveryOutcome,
    DeliveryResult,
    EnvelopeSkip,
    FailurePolicy,
)
from crashmap.delivery.pool import UploadClientPool


__all__ = [
    "DeliveryEnvelope",
    "DeliveryOutcome",
    "DeliveryResult",
    "EnvelopeBuilder",
    "EnvelopeInputs",
    "EnvelopeSkip",
    "FailurePolicy",
    "UploadClientPool",
    "UploadDeliveryClient",
    "apply_failure_policy",
]
