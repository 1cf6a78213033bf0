"""
Span-per-call tracing around a cloud client.
"""
from contextlib import ExitStack
from typing import Any, ContextManager, Dict, Optional, Protocol

from cloud.client import Client, Middleware
from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from logger_config import get_logger
from utils.exceptions import CloudError
from .logging_middleware import extract_service_verb

logger = get_logger(__name__)


class Span(Protocol):
    def set_attribute(self, key: str, value: Any) -> None:
        ...


class Tracer(Protocol):
    """
    Opens spans. The returned context manager must let exceptions raised
    inside it propagate.
    """

    def span(self, ctx: Optional[Context], name: str, attributes: Dict[str, Any]) -> ContextManager[Span]:
        ...


class TracingMiddleware:
    """Runs each call inside a "service.verb" span; a None tracer disables tracing."""

    def __init__(self, next_client: Client, tracer: Optional[Tracer] = None) -> None:
        self.next = next_client
        self.tracer = tracer

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        if self.tracer is None or request is None:
            return self.next.do(request, ctx)

        service, verb = extract_service_verb(request.operation)
        attributes: Dict[str, Any] = {
            'aws.service': service,
            'aws.operation': verb,
            'aws.path': request.path,
        }
        if request.method:
            attributes['http.method'] = request.method

        stack = ExitStack()
        try:
            span = stack.enter_context(self.tracer.span(ctx, f'{service}.{verb}', attributes))
        except Exception as e:
            logger.warning(f'Failed to open span for {request.operation}: {str(e)}')
            return self.next.do(request, ctx)

        with stack:
            try:
                response = self.next.do(request, ctx)
            except CloudError as e:
                self._annotate(span, {
                    'aws.error_code': e.code,
                    'aws.retriable': e.retriable,
                })
                raise

            extra: Dict[str, Any] = {'http.status_code': response.status_code}
            if response.metadata and 'aws_request_id' in response.metadata:
                extra['aws.request_id'] = str(response.metadata['aws_request_id'])
            self._annotate(span, extra)
            return response

    @staticmethod
    def _annotate(span: Span, attributes: Dict[str, Any]) -> None:
        for key, value in attributes.items():
            try:
                span.set_attribute(key, value)
            except Exception as e:
                logger.warning(f'Failed to set span attribute {key}: {str(e)}')


def tracing_middleware(tracer: Optional[Tracer]) -> Middleware:
    """Middleware that traces every call with `tracer`, or passes through when it is None."""
    return lambda next_client: TracingMiddleware(next_client, tracer)
