"""
Convenience wrappers around Client.do for the common AWS operations.

Each helper builds the Request for one operation and returns either the
interesting result field or the full Response. Failures are raised as
CloudError by the client; a payload that cannot be serialized raises
ValueError before any call is made.
"""
from typing import Any, Dict, List, Optional

from cloud.client import Client
from cloud.context import Context
from cloud.request import Request
from cloud.response import Response


# SQS

def sqs_send_message(client: Client, queue_url: str, value: Any, ctx: Optional[Context] = None) -> str:
    """Send `value` as a JSON message and return the message id."""
    request = Request(operation='sqs.send_message', path=queue_url).with_json_body(value)
    return client.do(request, ctx).headers.get('sqs.message_id', '')


def sqs_send_message_bytes(client: Client, queue_url: str, body: bytes, ctx: Optional[Context] = None) -> str:
    """Send a raw (non-JSON) message and return the message id."""
    request = Request(operation='sqs.send_message', path=queue_url).with_body(body)
    return client.do(request, ctx).headers.get('sqs.message_id', '')


def sqs_receive_message(
    client: Client,
    queue_url: str,
    max_messages: int,
    wait_time_seconds: int,
    ctx: Optional[Context] = None
) -> Response:
    request = Request(
        operation='sqs.receive_message',
        path=queue_url,
        query_params={
            'MaxNumberOfMessages': str(max_messages),
            'WaitTimeSeconds': str(wait_time_seconds),
        },
    )
    return client.do(request, ctx)


def sqs_delete_message(client: Client, queue_url: str, receipt_handle: str, ctx: Optional[Context] = None) -> None:
    request = Request(
        operation='sqs.delete_message',
        path=queue_url,
        headers={'sqs.receipt_handle': receipt_handle},
    )
    client.do(request, ctx)


def sqs_create_queue(
    client: Client,
    queue_name: str,
    attributes: Optional[Dict[str, str]] = None,
    ctx: Optional[Context] = None
) -> str:
    """Create a queue and return its URL."""
    headers = {f'sqs.queue_attribute.{key}': value for key, value in (attributes or {}).items()}
    request = Request(operation='sqs.create_queue', path=queue_name, headers=headers)
    return client.do(request, ctx).headers.get('sqs.queue_url', '')


def sqs_delete_queue(client: Client, queue_url: str, ctx: Optional[Context] = None) -> None:
    client.do(Request(operation='sqs.delete_queue', path=queue_url), ctx)


def sqs_list_queues(client: Client, prefix: str = '', ctx: Optional[Context] = None) -> Response:
    query_params = {'QueueNamePrefix': prefix} if prefix else {}
    return client.do(Request(operation='sqs.list_queues', query_params=query_params), ctx)


def sqs_get_queue_url(client: Client, queue_name: str, ctx: Optional[Context] = None) -> str:
    response = client.do(Request(operation='sqs.get_queue_url', path=queue_name), ctx)
    return response.headers.get('sqs.queue_url', '')


# SNS

def sns_publish(client: Client, topic_arn: str, value: Any, ctx: Optional[Context] = None) -> str:
    """Publish `value` as a JSON message and return the message id."""
    request = Request(operation='sns.publish', path=topic_arn).with_json_body(value)
    return client.do(request, ctx).headers.get('sns.message_id', '')


# Lambda

def lambda_invoke(client: Client, function_name: str, value: Any, ctx: Optional[Context] = None) -> Response:
    """Invoke a function synchronously with `value` as the JSON payload."""
    request = Request(operation='lambda.invoke', path=function_name).with_json_body(value)
    return client.do(request, ctx)


# S3

def s3_put_object(
    client: Client,
    bucket: str,
    key: str,
    body: bytes,
    content_type: str = '',
    metadata: Optional[Dict[str, str]] = None,
    ctx: Optional[Context] = None
) -> Response:
    headers = {f's3.metadata.{name}': value for name, value in (metadata or {}).items()}
    if content_type:
        headers['s3.content_type'] = content_type
    request = Request(operation='s3.put_object', path=f'{bucket}/{key}', body=body, headers=headers)
    return client.do(request, ctx)


def s3_get_object(client: Client, bucket: str, key: str, ctx: Optional[Context] = None) -> Response:
    return client.do(Request(operation='s3.get_object', path=f'{bucket}/{key}'), ctx)


def s3_delete_object(client: Client, bucket: str, key: str, ctx: Optional[Context] = None) -> None:
    client.do(Request(operation='s3.delete_object', path=f'{bucket}/{key}'), ctx)


def s3_head_object(client: Client, bucket: str, key: str, ctx: Optional[Context] = None) -> Response:
    return client.do(Request(operation='s3.head_object', path=f'{bucket}/{key}'), ctx)


def s3_list_objects(
    client: Client,
    bucket: str,
    prefix: str = '',
    max_keys: int = 0,
    ctx: Optional[Context] = None
) -> Response:
    path = f'{bucket}/{prefix}' if prefix else bucket
    query_params = {'MaxKeys': str(max_keys)} if max_keys > 0 else {}
    return client.do(Request(operation='s3.list_objects', path=path, query_params=query_params), ctx)


def s3_copy_object(
    client: Client,
    source_bucket: str,
    source_key: str,
    dest_bucket: str,
    dest_key: str,
    ctx: Optional[Context] = None
) -> Response:
    request = Request(
        operation='s3.copy_object',
        path=f'{dest_bucket}/{dest_key}',
        headers={
            's3.source_bucket': source_bucket,
            's3.source_key': source_key,
        },
    )
    return client.do(request, ctx)


# SES

def ses_send_email(client: Client, email_message: Dict[str, Any], ctx: Optional[Context] = None) -> str:
    """
    Send an email and return the message id.

    `email_message` holds from, to, subject, body_html, body_text, cc, bcc
    and reply_to as accepted by the ses.send_email operation.
    """
    request = Request(operation='ses.send_email').with_json_body(email_message)
    return client.do(request, ctx).headers.get('ses.message_id', '')


def ses_send_raw_email(
    client: Client,
    raw_message: bytes,
    destinations: Optional[List[str]] = None,
    ctx: Optional[Context] = None
) -> str:
    request = Request(operation='ses.send_raw_email').with_json_body({
        'raw_message': raw_message.decode('utf-8'),
        'destinations': destinations or [],
    })
    return client.do(request, ctx).headers.get('ses.message_id', '')


def ses_get_send_quota(client: Client, ctx: Optional[Context] = None) -> Response:
    return client.do(Request(operation='ses.get_send_quota'), ctx)


def ses_verify_email_identity(client: Client, email: str, ctx: Optional[Context] = None) -> None:
    client.do(Request(operation='ses.verify_email_identity', path=email), ctx)


def ses_list_verified_email_addresses(client: Client, ctx: Optional[Context] = None) -> Response:
    return client.do(Request(operation='ses.list_verified_email_addresses'), ctx)


# SSM

def ssm_get_parameter(client: Client, name: str, decrypt: bool = False, ctx: Optional[Context] = None) -> Response:
    query_params = {'WithDecryption': 'true'} if decrypt else {}
    return client.do(Request(operation='ssm.get_parameter', path=name, query_params=query_params), ctx)


def ssm_get_parameters(
    client: Client,
    names: List[str],
    decrypt: bool = False,
    ctx: Optional[Context] = None
) -> Response:
    query_params = {'WithDecryption': 'true'} if decrypt else {}
    request = Request(operation='ssm.get_parameters', query_params=query_params).with_json_body(names)
    return client.do(request, ctx)


def ssm_put_parameter(
    client: Client,
    name: str,
    value: str,
    param_type: str = '',
    description: str = '',
    overwrite: bool = False,
    tags: Optional[Dict[str, str]] = None,
    ctx: Optional[Context] = None
) -> Response:
    body: Dict[str, Any] = {
        'value': value,
        'type': param_type,
        'overwrite': overwrite,
    }
    if description:
        body['description'] = description
    if tags:
        body['tags'] = tags
    request = Request(operation='ssm.put_parameter', path=name).with_json_body(body)
    return client.do(request, ctx)


def ssm_delete_parameter(client: Client, name: str, ctx: Optional[Context] = None) -> None:
    client.do(Request(operation='ssm.delete_parameter', path=name), ctx)


def ssm_get_parameters_by_path(
    client: Client,
    path: str,
    recursive: bool = False,
    decrypt: bool = False,
    ctx: Optional[Context] = None
) -> Response:
    query_params = {}
    if recursive:
        query_params['Recursive'] = 'true'
    if decrypt:
        query_params['WithDecryption'] = 'true'
    request = Request(operation='ssm.get_parameters_by_path', path=path, query_params=query_params)
    return client.do(request, ctx)
