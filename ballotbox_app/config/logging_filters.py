import logging
from typing import Any, Optional

HEALTH_PATH_PREFIXES: tuple[str, ...] = ("/healthz", "/readyz")


class SkipHealthzFilter(logging.Filter):
    """Drop log records produced by load balancer health probes.

    Failing probes (503) are kept so an unavailable database still shows up in
    the logs.
    """

    def __init__(self, prefixes: tuple[str, ...] = HEALTH_PATH_PREFIXES) -> None:
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        if _status_code(record) == 503:
            return True

        path = _request_path(record)
        if path is not None:
            return not path.startswith(self.prefixes)

        message = record.getMessage()
        return not any(prefix in message for prefix in self.prefixes)


def _status_code(record: logging.LogRecord) -> Optional[int]:
    status = getattr(record, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def _request_path(record: logging.LogRecord) -> Optional[str]:
    path = _path_of(getattr(record, "request", None))
    if path:
        return path

    args = getattr(record, "args", None)
    if isinstance(args, tuple):
        for arg in args:
            path = _path_of(arg)
            if path:
                return path

    return None


def _path_of(obj: Any) -> Optional[str]:
    if obj is None:
        return None

    path = getattr(obj, "path", None) or getattr(obj, "path_info", None)
    if isinstance(path, str) and path:
        return path

    return None
