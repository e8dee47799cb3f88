"""Shared delivery clients, one per upload category."""

import threading
from collections.abc import Callable

from crashmap.core.structlog_logger import get_struct_logger
from crashmap.delivery.client import UploadDeliveryClient


logger = get_struct_logger(__name__)

ClientFactory = Callable[[str], UploadDeliveryClient]


class UploadClientPool:
    """Owns the long-lived delivery clients of one build invocation.

    Clients are created lazily on first use and shared by every work unit of
    the same category. Use as a context manager so sessions are closed when
    the invocation ends.
    """

    def __init__(
        self,
        initial_retry_delay: float = 1.0,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._clients: dict[str, UploadDeliveryClient] = {}
        self._factory = client_factory or (
            lambda category: UploadDeliveryClient(
                category, initial_retry_delay=initial_retry_delay
            )
        )

    def client_for(self, category: str) -> UploadDeliveryClient:
        with self._lock:
            client = self._clients.get(category)
            if client is None:
                client = self._factory(category)
                self._clients[category] = client
                logger.debug("upload_client_created", category=category)
            return client

    @property
    def categories(self) -> list[str]:
        with self._lock:
            return sorted(self._clients)

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    def __enter__(self) -> "UploadClientPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
