"""structlog loggers for crashmap modules and services."""

import structlog


def get_struct_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return the structlog logger for module *name*.

    Events use snake_case names with key/value context, for example
    ``logger.warning("upload_failed", kind="jvmMapping", key="jvmMapping:release")``.
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class StructlogMixin:
    """Give a service a ``logger`` bound to its class name.

    Services exposing a ``category`` attribute (one client per upload
    category) also get it bound to every event.
    """

    _logger: structlog.stdlib.BoundLogger | None = None

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        if self._logger is None:
            context: dict[str, str] = {"service": type(self).__name__}
            category = getattr(self, "category", None)
            if category is not None:
                context["category"] = str(category)
            self._logger = get_struct_logger(type(self).__module__).bind(**context)
        return self._logger
