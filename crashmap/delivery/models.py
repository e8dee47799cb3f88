"""Delivery envelope and result models."""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field

from crashmap.models.base import CrashmapBaseModel


class FailurePolicy(str, Enum):
    """What happens when a delivery fails terminally."""

    FAIL_BUILD = "fail-build"
    WARN_AND_CONTINUE = "warn-and-continue"

    @classmethod
    def from_flag(cls, fail_on_upload_error: bool) -> "FailurePolicy":
        return cls.FAIL_BUILD if fail_on_upload_error else cls.WARN_AND_CONTINUE


class DeliveryOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable-failure"
    TERMINAL_FAILURE = "terminal-failure"


@dataclass(frozen=True)
class DeliveryEnvelope:
    """Fully assembled outbound payload plus its delivery policy.

    Attributes:
        category: Upload client category (proguard, ndk, releases)
        endpoint: Target URL
        payload: JSON-compatible form fields, or the JSON body when there are no attachments
        attachments: Multipart part name to file on disk
        retry_count: Additional attempts allowed after the first one
        timeout_millis: Per-attempt timeout
        failure_policy: Behaviour on terminal failure
    """

    category: str
    endpoint: str
    payload: dict[str, Any]
    attachments: dict[str, Path] = field(default_factory=dict)
    retry_count: int = 0
    timeout_millis: int = 60000
    failure_policy: FailurePolicy = FailurePolicy.FAIL_BUILD

    @property
    def is_multipart(self) -> bool:
        return bool(self.attachments)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_millis / 1000.0

    def form_fields(self) -> dict[str, str]:
        """Payload rendered as multipart form fields."""
        fields = {}
        for name, value in self.payload.items():
            if isinstance(value, bool):
                fields[name] = "true" if value else "false"
            elif isinstance(value, dict | list):
                fields[name] = json.dumps(value, sort_keys=True)
            else:
                fields[name] = str(value)
        return fields

    def attachment_digests(self) -> dict[str, str]:
        return {
            name: hashlib.sha256(path.read_bytes()).hexdigest()
            for name, path in sorted(self.attachments.items())
        }

    def serialize(self) -> bytes:
        """Canonical byte form of the envelope; identical inputs give identical bytes."""
        digests = self.attachment_digests()
        document = {
            "category": self.category,
            "endpoint": self.endpoint,
            "payload": self.payload,
            "attachments": {
                name: {"file": path.name, "sha256": digests[name]}
                for name, path in self.attachments.items()
            },
        }
        return json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class EnvelopeSkip:
    """Required inputs are structurally absent; nothing can be delivered."""

    reason: str


class DeliveryResult(CrashmapBaseModel):
    """Result of delivering one envelope."""

    outcome: DeliveryOutcome
    attempts: int = 0
    status_code: int | None = None
    error: str | None = None
    cancelled: bool = False
    response_data: Any = None
    elapsed_seconds: float = Field(default=0.0, ge=0)

    @property
    def succeeded(self) -> bool:
        return self.outcome == DeliveryOutcome.SUCCESS
