"""
Routing of normalized requests to the per-service adapters.
"""
from typing import Dict, Mapping, Optional

import boto3

from cloud.client import Client
from cloud.context import Context, timeout_scope
from cloud.request import Request
from cloud.response import Response
from config import RetryPolicy
from logger_config import get_logger
from .lambda_service import LambdaService
from .marshal import invalid_request
from .provider import Provider
from .s3_service import S3Service
from .ses_service import SESService
from .sns_service import SNSService
from .sqs_service import SQSService
from .ssm_service import SSMService

logger = get_logger(__name__)


def default_services(provider: Provider) -> Dict[str, Client]:
    """Build one adapter per supported service, all sharing `provider`."""
    return {
        'sqs': SQSService(provider),
        'sns': SNSService(provider),
        'lambda': LambdaService(provider),
        's3': S3Service(provider),
        'ses': SESService(provider),
        'ssm': SSMService(provider),
    }


class Dispatcher:
    """
    Client that validates a request, bounds it by a timeout and hands it to
    the adapter named by the operation's first segment.

    The retry policy is stored for inspection only; the dispatcher makes
    exactly one attempt per call.
    """

    def __init__(
        self,
        session: Optional[boto3.session.Session] = None,
        timeout: float = 0.0,
        retries: Optional[RetryPolicy] = None,
        services: Optional[Mapping[str, Client]] = None,
        endpoint_url: Optional[str] = None
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            session: boto3 session shared by every adapter
            timeout: Default timeout in seconds; 0 means unbounded
            retries: Retry policy, stored but not applied
            services: Adapter table replacing the built-in one
            endpoint_url: Optional endpoint override for every adapter
        """
        self.timeout = timeout
        self.retries = retries or RetryPolicy()
        if services is None:
            services = default_services(Provider.with_timeout(session, timeout, endpoint_url))
        self._services: Dict[str, Client] = dict(services)

    def effective_timeout(self, request: Request) -> Optional[float]:
        """Per-request timeout if set, else the default, else None."""
        if request.timeout and request.timeout > 0:
            return request.timeout
        if self.timeout > 0:
            return self.timeout
        return None

    def _resolve(self, request: Optional[Request]) -> Client:
        if request is None:
            raise invalid_request("request cannot be None")
        if not request.operation:
            raise invalid_request("operation is required")

        parts = request.operation.split('.')
        if len(parts) < 2:
            raise invalid_request(
                f"invalid operation format: {request.operation} (expected 'service.operation')"
            )

        service = parts[0]
        adapter = self._services.get(service)
        if adapter is None:
            raise invalid_request(f"unsupported service: {service}")
        return adapter

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        """
        Execute one operation.

        Raises:
            CloudError: On validation failure or any adapter failure
        """
        adapter = self._resolve(request)
        ctx = ctx or Context.background()

        timeout = self.effective_timeout(request)
        if timeout is None:
            return adapter.do(request, ctx)

        logger.debug(f'Dispatching {request.operation} with timeout {timeout}s')
        with timeout_scope(ctx, timeout) as bounded:
            return adapter.do(request, bounded)
