"""
Normalization of boto3/botocore failures into CloudError.
"""
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from cloud.context import Context, ContextError
from logger_config import get_logger
from utils.exceptions import (
    CloudError,
    ERR_CODE_NOT_FOUND,
    ERR_CODE_SERVICE_UNAVAILABLE,
    ERR_CODE_THROTTLING,
)

logger = get_logger(__name__)

Normalizer = Callable[[Optional[BaseException], str], Optional[CloudError]]

# Provider error code -> HTTP-like status
_STATUS_BY_ERROR_CODE = {
    'Throttling': 429,
    'ThrottlingException': 429,
    'TooManyRequestsException': 429,
    'RequestLimitExceeded': 429,
    'AccessDenied': 403,
    'AccessDeniedException': 403,
    'NotFound': 404,
    'NotFoundException': 404,
    'NoSuchKey': 404,
    'NoSuchBucket': 404,
    'BadRequest': 400,
    'InvalidParameter': 400,
    'InvalidParameterValue': 400,
    'ServiceUnavailable': 503,
    'ServiceUnavailableException': 503,
}

# Statuses that map onto a generic, retriable error code
_GENERIC_CODE_BY_STATUS = {
    429: ERR_CODE_THROTTLING,
    503: ERR_CODE_SERVICE_UNAVAILABLE,
}


def client_error_code(err: BaseException) -> str:
    """Return the provider error code of a ClientError, or '' for anything else."""
    if isinstance(err, ClientError):
        return err.response.get('Error', {}).get('Code', '') or ''
    return ''


def _status_from_message(err: BaseException) -> int:
    text = str(err).lower()
    if '429' in text or 'throttl' in text:
        return 429
    if '404' in text or 'not found' in text:
        return 404
    if '400' in text or 'bad request' in text:
        return 400
    return 500


def normalize_aws_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """
    Convert an SDK error into a CloudError.

    The code is "<operation>.error" and the message is str(err), with err kept
    as the cause. Throttling and service-unavailable ClientErrors get the
    generic retriable codes instead. The status code is taken from the
    provider error code when known, then from the message text, else 500.

    Args:
        err: The SDK error, or None
        operation: Full operation string, e.g. "sqs.send_message"

    Returns:
        The normalized error, or None when err is None
    """
    if err is None:
        return None

    status_code = _STATUS_BY_ERROR_CODE.get(client_error_code(err), 500)
    code = f"{operation}.error"
    retriable = False
    if status_code in _GENERIC_CODE_BY_STATUS:
        code = _GENERIC_CODE_BY_STATUS[status_code]
        retriable = True
    elif status_code == 500:
        status_code = _status_from_message(err)

    return CloudError(
        code,
        str(err),
        retriable=retriable,
        cause=err,
        status_code=status_code,
    ).with_metadata('status_code', status_code)


def normalize_not_found(err: BaseException, message: str) -> CloudError:
    """Build the generic not-found error for a detected missing resource."""
    return CloudError(
        ERR_CODE_NOT_FOUND,
        message,
        cause=err,
        status_code=404,
    ).with_metadata('status_code', 404)


def call_native(
    ctx: Context,
    operation: str,
    normalizer: Normalizer,
    fn: Callable[[], Any]
) -> Any:
    """
    Make one native SDK call on behalf of an adapter.

    The context is checked first, so a cancelled or expired call never
    reaches the network. `fn` takes no arguments so that lazy client
    construction happens inside the guarded region too. Any SDK or context
    failure is normalized.

    Raises:
        CloudError: If the context is done or the SDK call fails
    """
    try:
        ctx.check()
        return fn()
    except (ClientError, BotoCoreError, ContextError) as e:
        logger.debug(f'{operation} native call failed: {str(e)}')
        raise normalizer(e, operation) from e


def aws_request_id(result: Any) -> Optional[str]:
    """Return the provider request id from a boto3 result, if present."""
    if isinstance(result, dict):
        return result.get('ResponseMetadata', {}).get('RequestId') or None
    return None
