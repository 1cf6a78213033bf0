"""
Uniform request/response contract for AWS operations.

Callers build a Request naming a "service.verb" operation, hand it to a
Client, and get back a Response or a raised CloudError.
"""
from .client import Client, Middleware, apply_middlewares
from .context import Context, ContextError, Cancelled, DeadlineExceeded, timeout_scope
from .request import Request
from .response import Response

__all__ = [
    'Client',
    'Middleware',
    'apply_middlewares',
    'Context',
    'ContextError',
    'Cancelled',
    'DeadlineExceeded',
    'timeout_scope',
    'Request',
    'Response',
]
