"""
Request metrics around a cloud client.
"""
import time
from typing import Optional, Protocol

from cloud.client import Client, Middleware
from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from logger_config import get_logger
from utils.exceptions import CloudError, ERR_CODE_THROTTLING

logger = get_logger(__name__)


class MetricsRecorder(Protocol):
    """Sink for per-call metrics. Durations are in seconds."""

    def record_request(self, operation: str, duration: float, status_code: int, error_code: str) -> None:
        ...

    def record_retry(self, operation: str) -> None:
        ...

    def record_throttle(self, operation: str) -> None:
        ...


def safe_record(method_name: str, recorder: MetricsRecorder, *args) -> None:
    """Call a recorder method, logging instead of raising if the recorder fails."""
    try:
        getattr(recorder, method_name)(*args)
    except Exception as e:
        logger.warning(f'Metrics recorder {method_name} failed: {str(e)}')


class MetricsMiddleware:
    """Records duration, status and error code of every call."""

    def __init__(self, next_client: Client, recorder: MetricsRecorder) -> None:
        self.next = next_client
        self.recorder = recorder

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        operation = request.operation if request is not None else ''
        started = time.monotonic()
        try:
            response = self.next.do(request, ctx)
        except CloudError as e:
            if e.code == ERR_CODE_THROTTLING:
                safe_record('record_throttle', self.recorder, operation)
            safe_record(
                'record_request', self.recorder,
                operation, time.monotonic() - started, e.status_code, e.code,
            )
            raise
        except Exception:
            safe_record(
                'record_request', self.recorder,
                operation, time.monotonic() - started, 500, '',
            )
            raise

        safe_record(
            'record_request', self.recorder,
            operation, time.monotonic() - started, response.status_code, '',
        )
        return response


def metrics_middleware(recorder: MetricsRecorder) -> Middleware:
    """Middleware that reports every call to `recorder`."""
    return lambda next_client: MetricsMiddleware(next_client, recorder)
