import logging

from config.logging_filters import SkipHealthzFilter


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class _Req:
    def __init__(self, path: str):
        self.path = path


def test_skip_healthz_filter_drops_by_message():
    f = SkipHealthzFilter()
    assert f.filter(_record('"GET /healthz HTTP/1.1" 200 2')) is False
    assert f.filter(_record('"GET /readyz/ HTTP/1.1" 200 2')) is False


def test_skip_healthz_filter_drops_by_request_attr():
    f = SkipHealthzFilter()
    assert f.filter(_record("ignored", request=_Req("/healthz/"))) is False
    assert f.filter(_record("ignored", request=_Req("/readyz"))) is False


def test_skip_healthz_filter_keeps_failing_probes():
    f = SkipHealthzFilter()
    assert f.filter(_record("Service Unavailable: /readyz/", status_code=503, request=_Req("/readyz/"))) is True


def test_skip_healthz_filter_keeps_api_paths():
    f = SkipHealthzFilter()
    assert f.filter(_record('"GET /api/elections/ HTTP/1.1" 200 512')) is True
    assert f.filter(_record("ignored", request=_Req("/api/elections/1/vote/"))) is True
