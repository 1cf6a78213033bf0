"""
SQS adapter for queue operations.
"""
import threading
from typing import Any, Optional, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from utils.serialization import to_json_bytes
from .errors import call_native, normalize_aws_error
from .marshal import (
    body_text,
    build_response,
    invalid_request,
    parse_int,
    prefixed,
    string_attributes,
    unsupported_operation,
)
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_sqs import SQSClient
else:
    SQSClient = Any

MESSAGE_ATTRIBUTE_PREFIX = 'sqs.message_attribute.'
QUEUE_ATTRIBUTE_PREFIX = 'sqs.queue_attribute.'


def normalize_sqs_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """Convert an SQS SDK error into a CloudError."""
    return normalize_aws_error(err, operation)


class SQSService:
    """Adapter for SQS operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        """
        Initialize SQS adapter.

        Args:
            provider: Source of the boto3 client
        """
        self._provider = provider or Provider()
        self._client: Optional[SQSClient] = None
        self._client_lock = threading.Lock()
        self._operations = {
            'sqs.send_message': self.send_message,
            'sqs.receive_message': self.receive_message,
            'sqs.delete_message': self.delete_message,
            'sqs.create_queue': self.create_queue,
            'sqs.delete_queue': self.delete_queue,
            'sqs.list_queues': self.list_queues,
            'sqs.get_queue_url': self.get_queue_url,
        }

    @property
    def client(self) -> SQSClient:
        """Lazy initialization of SQS client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('sqs')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        handler = self._operations.get(request.operation)
        if handler is None:
            raise unsupported_operation('SQS', request.operation)
        return handler(request, ctx or Context.background())

    def _call(self, ctx: Context, operation: str, method: str, **params: Any) -> Any:
        return call_native(
            ctx, operation, normalize_sqs_error,
            lambda: getattr(self.client, method)(**params),
        )

    def send_message(self, request: Request, ctx: Context) -> Response:
        """
        Send one message.

        Headers: sqs.delay_seconds, sqs.message_group_id,
        sqs.message_dedupe_id, sqs.message_attribute.<name>.
        """
        if not request.path:
            raise invalid_request("queue URL/path is required")

        params = {
            'QueueUrl': request.path,
            'MessageBody': body_text(request),
        }
        headers = request.headers or {}
        delay = parse_int(headers.get('sqs.delay_seconds'))
        if delay is not None:
            params['DelaySeconds'] = delay
        if 'sqs.message_group_id' in headers:
            params['MessageGroupId'] = headers['sqs.message_group_id']
        if 'sqs.message_dedupe_id' in headers:
            params['MessageDeduplicationId'] = headers['sqs.message_dedupe_id']
        attributes = prefixed(headers, MESSAGE_ATTRIBUTE_PREFIX)
        if attributes:
            params['MessageAttributes'] = string_attributes(attributes)

        result = self._call(ctx, 'sqs.send_message', 'send_message', **params)

        message_id = result.get('MessageId', '')
        return build_response(
            200,
            result,
            headers={'sqs.message_id': message_id},
            metadata={
                'sqs.message_id': message_id,
                'sqs.sequence_number': result.get('SequenceNumber', ''),
                'sqs.md5_of_message_body': result.get('MD5OfMessageBody', ''),
                'sqs.md5_of_message_attrs': result.get('MD5OfMessageAttributes', ''),
            },
        )

    def receive_message(self, request: Request, ctx: Context) -> Response:
        """Receive up to MaxNumberOfMessages (default 1) messages as a JSON list."""
        if not request.path:
            raise invalid_request("queue URL/path is required")

        query = request.query_params or {}
        params = {
            'QueueUrl': request.path,
            'MaxNumberOfMessages': parse_int(query.get('MaxNumberOfMessages')) or 1,
        }
        wait_time = parse_int(query.get('WaitTimeSeconds'))
        if wait_time is not None:
            params['WaitTimeSeconds'] = wait_time

        result = self._call(ctx, 'sqs.receive_message', 'receive_message', **params)

        messages = [
            {
                'message_id': message.get('MessageId', ''),
                'receipt_handle': message.get('ReceiptHandle', ''),
                'body': message.get('Body', ''),
                'attributes': message.get('Attributes'),
            }
            for message in result.get('Messages', [])
        ]
        return build_response(
            200,
            result,
            body=to_json_bytes(messages),
            headers={'sqs.message_count': str(len(messages))},
        )

    def delete_message(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("queue URL/path is required")
        receipt_handle = (request.headers or {}).get('sqs.receipt_handle', '')
        if not receipt_handle:
            raise invalid_request("receipt handle is required")

        result = self._call(
            ctx, 'sqs.delete_message', 'delete_message',
            QueueUrl=request.path,
            ReceiptHandle=receipt_handle,
        )
        return build_response(204, result)

    def create_queue(self, request: Request, ctx: Context) -> Response:
        """Create a queue named by the path; headers sqs.queue_attribute.<name> set attributes."""
        if not request.path:
            raise invalid_request("queue name is required")

        params = {'QueueName': request.path}
        attributes = prefixed(request.headers, QUEUE_ATTRIBUTE_PREFIX)
        if attributes:
            params['Attributes'] = attributes

        result = self._call(ctx, 'sqs.create_queue', 'create_queue', **params)

        queue_url = result.get('QueueUrl', '')
        return build_response(
            201,
            result,
            headers={'sqs.queue_url': queue_url},
            metadata={'sqs.queue_url': queue_url},
        )

    def delete_queue(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("queue URL is required")

        result = self._call(ctx, 'sqs.delete_queue', 'delete_queue', QueueUrl=request.path)
        return build_response(204, result)

    def list_queues(self, request: Request, ctx: Context) -> Response:
        params = {}
        prefix = (request.query_params or {}).get('QueueNamePrefix')
        if prefix is not None:
            params['QueueNamePrefix'] = prefix

        result = self._call(ctx, 'sqs.list_queues', 'list_queues', **params)

        queue_urls = list(result.get('QueueUrls', []))
        return build_response(
            200,
            result,
            body=to_json_bytes(queue_urls),
            headers={'sqs.queue_count': str(len(queue_urls))},
        )

    def get_queue_url(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("queue name is required")

        result = self._call(ctx, 'sqs.get_queue_url', 'get_queue_url', QueueName=request.path)

        queue_url = result.get('QueueUrl', '')
        return build_response(
            200,
            result,
            headers={'sqs.queue_url': queue_url},
            metadata={'sqs.queue_url': queue_url},
        )
