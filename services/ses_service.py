"""
SES adapter for sending email and managing verified addresses.
"""
import threading
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from utils.serialization import to_json_bytes
from .errors import call_native, normalize_aws_error
from .marshal import build_response, invalid_request, json_body, unsupported_operation
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_ses import SESClient
else:
    SESClient = Any

CHARSET = 'UTF-8'


def normalize_ses_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """Convert an SES SDK error into a CloudError."""
    return normalize_aws_error(err, operation)


def _addresses(entries: Any) -> List[str]:
    """Extract emails from a list of {"email": ...} entries, skipping malformed ones."""
    if not isinstance(entries, list):
        return []
    return [
        entry['email'] for entry in entries
        if isinstance(entry, dict) and isinstance(entry.get('email'), str) and entry['email']
    ]


def _content(data: str) -> Dict[str, str]:
    return {'Data': data, 'Charset': CHARSET}


class SESService:
    """Adapter for SES operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        self._provider = provider or Provider()
        self._client: Optional[SESClient] = None
        self._client_lock = threading.Lock()
        self._operations = {
            'ses.send_email': self.send_email,
            'ses.send_raw_email': self.send_raw_email,
            'ses.get_send_quota': self.get_send_quota,
            'ses.get_send_statistics': self.get_send_statistics,
            'ses.verify_email_identity': self.verify_email_identity,
            'ses.delete_verified_email_address': self.delete_verified_email_address,
            'ses.list_verified_email_addresses': self.list_verified_email_addresses,
        }

    @property
    def client(self) -> SESClient:
        """Lazy initialization of SES client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('ses')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        handler = self._operations.get(request.operation)
        if handler is None:
            raise unsupported_operation('SES', request.operation)
        return handler(request, ctx or Context.background())

    def send_email(self, request: Request, ctx: Context) -> Response:
        """
        Send a formatted email described by the JSON body.

        Body fields: from {email, name}, to/cc/bcc/reply_to lists of
        {email}, subject, body_html, body_text.
        """
        message = json_body(request)
        if not isinstance(message, dict):
            raise invalid_request("email message must be a JSON object")

        sender = message.get('from')
        if not isinstance(sender, dict):
            raise invalid_request("from address is required")
        from_email = sender.get('email') or ''
        if not from_email:
            raise invalid_request("from.email is required")
        from_name = sender.get('name') or ''
        source = f"{from_name} <{from_email}>" if from_name else from_email

        destination = {
            'ToAddresses': _addresses(message.get('to')),
            'CcAddresses': _addresses(message.get('cc')),
            'BccAddresses': _addresses(message.get('bcc')),
        }

        body: Dict[str, Any] = {}
        if message.get('body_html'):
            body['Html'] = _content(message['body_html'])
        if message.get('body_text'):
            body['Text'] = _content(message['body_text'])

        params: Dict[str, Any] = {
            'Source': source,
            'Destination': destination,
            'Message': {
                'Subject': _content(message.get('subject') or ''),
                'Body': body,
            },
        }
        reply_to = _addresses(message.get('reply_to'))
        if reply_to:
            params['ReplyToAddresses'] = reply_to

        result = call_native(
            ctx, 'ses.send_email', normalize_ses_error,
            lambda: self.client.send_email(**params),
        )

        message_id = result.get('MessageId', '')
        return build_response(
            200,
            result,
            headers={'ses.message_id': message_id},
            metadata={'ses.message_id': message_id},
        )

    def send_raw_email(self, request: Request, ctx: Context) -> Response:
        """Send a raw MIME message; JSON body fields raw_message and destinations."""
        message = json_body(request)
        if not isinstance(message, dict) or not isinstance(message.get('raw_message'), str):
            raise invalid_request("raw_message is required")

        params: Dict[str, Any] = {
            'RawMessage': {'Data': message['raw_message'].encode('utf-8')},
        }
        destinations = message.get('destinations')
        if isinstance(destinations, list) and destinations:
            params['Destinations'] = [str(destination) for destination in destinations]

        result = call_native(
            ctx, 'ses.send_raw_email', normalize_ses_error,
            lambda: self.client.send_raw_email(**params),
        )

        message_id = result.get('MessageId', '')
        return build_response(
            200,
            result,
            headers={'ses.message_id': message_id},
            metadata={'ses.message_id': message_id},
        )

    def get_send_quota(self, request: Request, ctx: Context) -> Response:
        result = call_native(
            ctx, 'ses.get_send_quota', normalize_ses_error,
            lambda: self.client.get_send_quota(),
        )
        quota = {
            'max_24_hour_send': result.get('Max24HourSend', 0.0),
            'max_send_rate': result.get('MaxSendRate', 0.0),
            'sent_last_24_hours': result.get('SentLast24Hours', 0.0),
        }
        return build_response(200, result, body=to_json_bytes(quota))

    def get_send_statistics(self, request: Request, ctx: Context) -> Response:
        result = call_native(
            ctx, 'ses.get_send_statistics', normalize_ses_error,
            lambda: self.client.get_send_statistics(),
        )
        data_points = [
            {
                'timestamp': point.get('Timestamp'),
                'delivery_attempts': point.get('DeliveryAttempts', 0),
                'bounces': point.get('Bounces', 0),
                'complaints': point.get('Complaints', 0),
                'rejects': point.get('Rejects', 0),
            }
            for point in result.get('SendDataPoints', [])
        ]
        return build_response(200, result, body=to_json_bytes(data_points))

    def verify_email_identity(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("email address is required")

        result = call_native(
            ctx, 'ses.verify_email_identity', normalize_ses_error,
            lambda: self.client.verify_email_address(EmailAddress=request.path),
        )
        return build_response(200, result)

    def delete_verified_email_address(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("email address is required")

        result = call_native(
            ctx, 'ses.delete_verified_email_address', normalize_ses_error,
            lambda: self.client.delete_verified_email_address(EmailAddress=request.path),
        )
        return build_response(204, result)

    def list_verified_email_addresses(self, request: Request, ctx: Context) -> Response:
        result = call_native(
            ctx, 'ses.list_verified_email_addresses', normalize_ses_error,
            lambda: self.client.list_verified_email_addresses(),
        )
        return build_response(
            200,
            result,
            body=to_json_bytes(list(result.get('VerifiedEmailAddresses', []))),
        )
