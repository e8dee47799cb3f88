"""HTTP delivery of upload envelopes."""

import threading
import time
from contextlib import ExitStack
from typing import Any

import requests

from crashmap.core.errors import UploadError
from crashmap.core.structlog_logger import StructlogMixin, get_struct_logger
from crashmap.delivery.models import (
    DeliveryEnvelope,
    DeliveryOutcome,
    DeliveryResult,
    FailurePolicy,
)


logger = get_struct_logger(__name__)

USER_AGENT = "crashmap-uploader"


def _safe_json_parse(response: requests.Response) -> Any:
    """Safely parse JSON response, returning None if parsing fails."""
    if not response.content:
        return None
    try:
        return response.json()
    except (ValueError, TypeError):
        return None


class UploadDeliveryClient(StructlogMixin):
    """Delivers envelopes of one upload category with retries.

    One client is shared by every work unit of its category within a build
    invocation so connections are reused. The client keeps no per-unit state;
    retry budget and timeout come from each envelope.
    """

    def __init__(
        self,
        category: str,
        session: requests.Session | None = None,
        initial_retry_delay: float = 1.0,
    ) -> None:
        super().__init__()
        self.category = category
        self.initial_retry_delay = initial_retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"user-agent": USER_AGENT, "accept": "*/*"})

    def deliver(
        self,
        envelope: DeliveryEnvelope,
        cancel_event: threading.Event | None = None,
    ) -> DeliveryResult:
        """Attempt delivery up to ``retry_count + 1`` times.

        Transient failures (network errors, timeouts, 5xx) are retried with
        exponential backoff. 4xx responses are terminal and never retried.
        Cancellation is only observed between attempts.
        """
        started = time.monotonic()
        max_attempts = envelope.retry_count + 1
        last_error: str | None = None
        last_status: int | None = None
        last_data: Any = None

        for attempt in range(max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                self.logger.warning(
                    "delivery_cancelled", endpoint=envelope.endpoint, attempts=attempt
                )
                return DeliveryResult(
                    outcome=DeliveryOutcome.RETRYABLE_FAILURE,
                    attempts=attempt,
                    status_code=last_status,
                    error=last_error or "cancelled before delivery",
                    cancelled=True,
                    elapsed_seconds=time.monotonic() - started,
                )

            try:
                response = self._send(envelope)
            except requests.exceptions.RequestException as e:
                last_error = f"Network error: {e}"
                last_status = None
                self.logger.info(
                    "delivery_attempt_failed",
                    endpoint=envelope.endpoint,
                    attempt=attempt + 1,
                    error=str(e),
                )
            except OSError as e:
                # Attachment could not be read; retrying cannot help
                return DeliveryResult(
                    outcome=DeliveryOutcome.TERMINAL_FAILURE,
                    attempts=attempt + 1,
                    error=f"Could not read attachment: {e}",
                    elapsed_seconds=time.monotonic() - started,
                )
            else:
                last_status = response.status_code
                last_data = _safe_json_parse(response)
                if response.status_code < 300:
                    self.logger.debug(
                        "delivery_succeeded",
                        endpoint=envelope.endpoint,
                        status_code=response.status_code,
                        attempts=attempt + 1,
                    )
                    return DeliveryResult(
                        outcome=DeliveryOutcome.SUCCESS,
                        attempts=attempt + 1,
                        status_code=response.status_code,
                        response_data=last_data,
                        elapsed_seconds=time.monotonic() - started,
                    )
                if response.status_code < 500:
                    # Malformed payload or rejected credentials
                    return DeliveryResult(
                        outcome=DeliveryOutcome.TERMINAL_FAILURE,
                        attempts=attempt + 1,
                        status_code=response.status_code,
                        error=f"Request rejected with HTTP {response.status_code}: {response.text[:200]}",
                        response_data=last_data,
                        elapsed_seconds=time.monotonic() - started,
                    )
                last_error = f"Server error HTTP {response.status_code}"
                self.logger.info(
                    "delivery_attempt_failed",
                    endpoint=envelope.endpoint,
                    attempt=attempt + 1,
                    status_code=response.status_code,
                )

            if attempt < max_attempts - 1:
                self._backoff(attempt, cancel_event)

        return DeliveryResult(
            outcome=DeliveryOutcome.TERMINAL_FAILURE,
            attempts=max_attempts,
            status_code=last_status,
            error=f"{last_error} after {max_attempts} attempts",
            response_data=last_data,
            elapsed_seconds=time.monotonic() - started,
        )

    def _send(self, envelope: DeliveryEnvelope) -> requests.Response:
        if not envelope.is_multipart:
            return self.session.post(
                envelope.endpoint,
                json=envelope.payload,
                timeout=envelope.timeout_seconds,
            )

        with ExitStack() as stack:
            files = {
                name: (path.name, stack.enter_context(path.open("rb")))
                for name, path in sorted(envelope.attachments.items())
            }
            return self.session.post(
                envelope.endpoint,
                data=envelope.form_fields(),
                files=files,
                timeout=envelope.timeout_seconds,
            )

    def _backoff(self, attempt: int, cancel_event: threading.Event | None) -> None:
        delay = self.initial_retry_delay * (2**attempt)
        if delay <= 0:
            return
        if cancel_event is not None:
            cancel_event.wait(delay)
        else:
            time.sleep(delay)

    def close(self) -> None:
        self.session.close()


def apply_failure_policy(
    result: DeliveryResult, envelope: DeliveryEnvelope, kind: str, key: str
) -> None:
    """Surface a failed delivery according to the envelope's failure policy.

    A delivery cancelled at a retry boundary is not a failure and never raises.

    Raises:
        UploadError: When the policy is ``fail-build``
    """
    if result.succeeded:
        return

    if result.cancelled:
        logger.warning(
            "upload_cancelled",
            kind=kind,
            key=key,
            endpoint=envelope.endpoint,
            attempts=result.attempts,
        )
        return

    if envelope.failure_policy == FailurePolicy.FAIL_BUILD:
        logger.error(
            "upload_failed",
            kind=kind,
            key=key,
            endpoint=envelope.endpoint,
            status_code=result.status_code,
            attempts=result.attempts,
            error=result.error,
        )
        raise UploadError(
            f"Upload of {kind} for {key} failed: {result.error}",
            kind=kind,
            key=key,
            status_code=result.status_code,
            attempts=result.attempts,
            response_data=result.response_data,
        )

    logger.warning(
        "upload_failed_continuing",
        kind=kind,
        key=key,
        endpoint=envelope.endpoint,
        status_code=result.status_code,
        attempts=result.attempts,
        error=result.error,
    )
