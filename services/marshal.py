"""
Helpers for mapping normalized requests onto boto3 parameters and back.
"""
import json
from typing import Any, Dict, Optional

from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError, ERR_CODE_INVALID_REQUEST, new_error
from .errors import aws_request_id


def invalid_request(message: str) -> CloudError:
    return new_error(ERR_CODE_INVALID_REQUEST, message)


def unsupported_operation(service_label: str, operation: str) -> CloudError:
    return invalid_request(f"unsupported {service_label} operation: {operation}")


def prefixed(values: Optional[Dict[str, str]], prefix: str) -> Dict[str, str]:
    """Collect entries whose key starts with `prefix`, with the prefix removed."""
    if not values:
        return {}
    return {
        key[len(prefix):]: value
        for key, value in values.items()
        if key.startswith(prefix) and len(key) > len(prefix)
    }


def string_attributes(values: Dict[str, str]) -> Dict[str, Dict[str, str]]:
    """Build String-typed message attributes for SQS/SNS."""
    return {
        name: {'DataType': 'String', 'StringValue': value}
        for name, value in values.items()
    }


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse a decimal integer, returning None when absent or malformed."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        return None


def is_true(values: Optional[Dict[str, str]], key: str) -> bool:
    return bool(values) and values.get(key) == 'true'


def body_text(request: Request) -> str:
    """
    Decode the request body as UTF-8 text.

    Raises:
        CloudError: If the body is not valid UTF-8
    """
    try:
        return request.body.decode('utf-8')
    except UnicodeDecodeError as e:
        raise invalid_request(f"body must be valid UTF-8: {str(e)}") from e


def json_body(request: Request) -> Any:
    """
    Parse the request body as JSON.

    Raises:
        CloudError: If the body is not valid JSON
    """
    try:
        return json.loads(request.body)
    except ValueError as e:
        raise invalid_request(f"invalid JSON body: {str(e)}") from e


def build_response(
    status_code: int,
    result: Any = None,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> Response:
    """
    Build a Response, surfacing the provider request id from `result`.
    """
    response_metadata = dict(metadata or {})
    request_id = aws_request_id(result)
    if request_id:
        response_metadata['aws_request_id'] = request_id
    return Response(
        status_code=status_code,
        body=body,
        headers=dict(headers or {}),
        metadata=response_metadata,
    )
