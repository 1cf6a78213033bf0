"""
SNS adapter for topic publishing.
"""
import threading
from typing import Any, Optional, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from .errors import call_native, normalize_aws_error
from .marshal import (
    body_text,
    build_response,
    invalid_request,
    prefixed,
    string_attributes,
    unsupported_operation,
)
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_sns import SNSClient
else:
    SNSClient = Any

MESSAGE_ATTRIBUTE_PREFIX = 'sns.message_attribute.'


def normalize_sns_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """Convert an SNS SDK error into a CloudError."""
    return normalize_aws_error(err, operation)


class SNSService:
    """Adapter for SNS operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        self._provider = provider or Provider()
        self._client: Optional[SNSClient] = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> SNSClient:
        """Lazy initialization of SNS client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('sns')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        if request.operation == 'sns.publish':
            return self.publish(request, ctx or Context.background())
        raise unsupported_operation('SNS', request.operation)

    def publish(self, request: Request, ctx: Context) -> Response:
        """
        Publish the body to the topic ARN in the path.

        Headers: sns.subject, sns.message_attribute.<name>.
        """
        if not request.path:
            raise invalid_request("topic ARN/path is required")

        params = {
            'TopicArn': request.path,
            'Message': body_text(request),
        }
        headers = request.headers or {}
        if 'sns.subject' in headers:
            params['Subject'] = headers['sns.subject']
        attributes = prefixed(headers, MESSAGE_ATTRIBUTE_PREFIX)
        if attributes:
            params['MessageAttributes'] = string_attributes(attributes)

        result = call_native(
            ctx, 'sns.publish', normalize_sns_error,
            lambda: self.client.publish(**params),
        )

        message_id = result.get('MessageId', '')
        return build_response(
            200,
            result,
            headers={'sns.message_id': message_id},
            metadata={'sns.message_id': message_id},
        )
