"""
Structured request logging around a cloud client.
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from cloud.client import Client, Middleware
from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from logger_config import get_logger
from utils.exceptions import CloudError


def extract_service_verb(operation: str) -> Tuple[str, str]:
    """
    Split "service.verb" into its first two segments.

    An operation without a dot is returned whole as the service, with an
    empty verb.
    """
    parts = operation.split('.')
    if len(parts) >= 2:
        return parts[0], parts[1]
    return operation, ''


class LoggingMiddleware:
    """
    Logs one record per call: info on success, error on failure.

    Only structural fields are logged, never request or response bodies.
    """

    def __init__(self, next_client: Client, logger: Optional[logging.Logger] = None) -> None:
        self.next = next_client
        self.logger = logger or get_logger('cloud_client')

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        operation = request.operation if request is not None else ''
        service, verb = extract_service_verb(operation)

        fields: Dict[str, Any] = {
            'request_id': str(uuid.uuid4()),
            'operation': operation,
            'service': service,
            'verb': verb,
            'path': request.path if request is not None else '',
        }
        if request is not None and request.method:
            fields['method'] = request.method

        start_time = datetime.now(timezone.utc)
        started = time.monotonic()
        try:
            response = self.next.do(request, ctx)
        except CloudError as e:
            fields.update(self._timing(start_time, started))
            fields.update({
                'success': False,
                'error_code': e.code,
                'error_message': e.message,
                'retriable': e.retriable,
                'status_code': e.status_code,
            })
            self.logger.error(f'AWS operation failed: {operation}', extra=fields)
            raise
        except Exception as e:
            fields.update(self._timing(start_time, started))
            fields.update({
                'success': False,
                'error_message': str(e),
                'status_code': 500,
            })
            self.logger.error(f'AWS operation failed: {operation}', extra=fields)
            raise

        fields.update(self._timing(start_time, started))
        fields['success'] = True
        fields['status_code'] = response.status_code
        if response.metadata and 'aws_request_id' in response.metadata:
            fields['aws_request_id'] = response.metadata['aws_request_id']

        self.logger.info(f'AWS operation completed: {operation}', extra=fields)
        return response

    @staticmethod
    def _timing(start_time: datetime, started: float) -> Dict[str, Any]:
        return {
            'duration_ms': int((time.monotonic() - started) * 1000),
            'start_time': start_time.isoformat(timespec='seconds'),
        }


def logging_middleware(logger: Optional[logging.Logger] = None) -> Middleware:
    """Middleware that logs every call through `logger`."""
    return lambda next_client: LoggingMiddleware(next_client, logger)
