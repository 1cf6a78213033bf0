"""
Lambda adapter for function invocation.
"""
import threading
from typing import Any, Dict, Optional, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from .errors import call_native, normalize_aws_error
from .marshal import build_response, invalid_request, unsupported_operation
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_lambda import LambdaClient
else:
    LambdaClient = Any

DEFAULT_INVOCATION_TYPE = 'RequestResponse'


def normalize_lambda_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """Convert a Lambda SDK error into a CloudError."""
    return normalize_aws_error(err, operation)


class LambdaService:
    """Adapter for Lambda operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        self._provider = provider or Provider()
        self._client: Optional[LambdaClient] = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> LambdaClient:
        """Lazy initialization of Lambda client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('lambda')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        if request.operation == 'lambda.invoke':
            return self.invoke(request, ctx or Context.background())
        raise unsupported_operation('Lambda', request.operation)

    def invoke(self, request: Request, ctx: Context) -> Response:
        """
        Invoke the function named by the path with the body as payload.

        Headers:
            lambda.invocation_type: RequestResponse (default), Event or DryRun
            lambda.qualifier: Version or alias

        A function error is reported as a 500 response carrying the
        lambda.function_error header, not as a raised error, because the
        invocation itself succeeded.
        """
        if not request.path:
            raise invalid_request("function name/path is required")

        headers = request.headers or {}
        params: Dict[str, Any] = {
            'FunctionName': request.path,
            'Payload': request.body,
            'InvocationType': headers.get('lambda.invocation_type', DEFAULT_INVOCATION_TYPE),
        }
        if 'lambda.qualifier' in headers:
            params['Qualifier'] = headers['lambda.qualifier']

        def _invoke() -> Dict[str, Any]:
            result = self.client.invoke(**params)
            payload = result.get('Payload')
            result['Payload'] = payload.read() if payload is not None else b''
            return result

        result = call_native(ctx, 'lambda.invoke', normalize_lambda_error, _invoke)

        status_code = result.get('StatusCode') or 200
        response_headers = {}
        if result.get('FunctionError'):
            response_headers['lambda.function_error'] = result['FunctionError']
            status_code = 500
        if result.get('LogResult'):
            response_headers['lambda.log_result'] = result['LogResult']

        return build_response(
            status_code,
            result,
            body=result['Payload'],
            headers=response_headers,
            metadata={'lambda.executed_version': result.get('ExecutedVersion', '')},
        )
