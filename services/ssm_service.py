"""
SSM Parameter Store adapter.
"""
import threading
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from utils.serialization import to_json_bytes
from .errors import call_native, client_error_code, normalize_aws_error, normalize_not_found
from .marshal import build_response, invalid_request, is_true, json_body, parse_int, unsupported_operation
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_ssm import SSMClient
else:
    SSMClient = Any

DEFAULT_PARAMETER_TYPE = 'String'


def normalize_ssm_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """
    Convert an SSM SDK error into a CloudError.

    A missing parameter becomes aws.not_found; everything else follows
    normalize_aws_error.
    """
    if err is None:
        return None
    if client_error_code(err) == 'ParameterNotFound':
        return normalize_not_found(err, f"Parameter not found: {str(err)}")
    return normalize_aws_error(err, operation)


def map_parameter(param: Dict[str, Any]) -> Dict[str, Any]:
    mapped = {
        'name': param.get('Name', ''),
        'value': param.get('Value', ''),
        'type': param.get('Type', ''),
        'arn': param.get('ARN', ''),
        'version': param.get('Version', 0),
    }
    if param.get('LastModifiedDate') is not None:
        mapped['last_modified_date'] = param['LastModifiedDate']
    if param.get('DataType') is not None:
        mapped['data_type'] = param['DataType']
    return mapped


def map_parameter_history(entry: Dict[str, Any]) -> Dict[str, Any]:
    mapped = {
        'name': entry.get('Name', ''),
        'type': entry.get('Type', ''),
        'value': entry.get('Value', ''),
        'version': entry.get('Version', 0),
    }
    for source, target in (
        ('LastModifiedDate', 'last_modified_date'),
        ('LastModifiedUser', 'last_modified_user'),
        ('Description', 'description'),
    ):
        if entry.get(source) is not None:
            mapped[target] = entry[source]
    if entry.get('Labels'):
        mapped['labels'] = list(entry['Labels'])
    return mapped


def _split_names(value: str) -> List[str]:
    return [part.strip() for part in value.split(',') if part.strip()]


class SSMService:
    """Adapter for SSM Parameter Store operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        self._provider = provider or Provider()
        self._client: Optional[SSMClient] = None
        self._client_lock = threading.Lock()
        self._operations = {
            'ssm.get_parameter': self.get_parameter,
            'ssm.get_parameters': self.get_parameters,
            'ssm.put_parameter': self.put_parameter,
            'ssm.delete_parameter': self.delete_parameter,
            'ssm.get_parameters_by_path': self.get_parameters_by_path,
            'ssm.get_parameter_history': self.get_parameter_history,
            'ssm.describe_parameters': self.describe_parameters,
        }

    @property
    def client(self) -> SSMClient:
        """Lazy initialization of SSM client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('ssm')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        handler = self._operations.get(request.operation)
        if handler is None:
            raise unsupported_operation('SSM', request.operation)
        return handler(request, ctx or Context.background())

    def _paginate(
        self,
        ctx: Context,
        operation: str,
        method: str,
        key: str,
        mapper: Callable[[Dict[str, Any]], Dict[str, Any]],
        **params: Any
    ) -> List[Dict[str, Any]]:
        """
        Walk every page of a boto3 paginator, mapping each item under `key`.

        Pages are fetched one at a time through call_native, so the context
        is checked before each page.
        """
        pages = call_native(
            ctx, operation, normalize_ssm_error,
            lambda: iter(self.client.get_paginator(method).paginate(**params)),
        )
        items: List[Dict[str, Any]] = []
        while True:
            page = call_native(ctx, operation, normalize_ssm_error, lambda: next(pages, None))
            if page is None:
                return items
            items.extend(mapper(item) for item in page.get(key, []))

    def get_parameter(self, request: Request, ctx: Context) -> Response:
        """Fetch one parameter; query WithDecryption=true decrypts SecureStrings."""
        if not request.path:
            raise invalid_request("parameter name is required")

        result = call_native(
            ctx, 'ssm.get_parameter', normalize_ssm_error,
            lambda: self.client.get_parameter(
                Name=request.path,
                WithDecryption=is_true(request.query_params, 'WithDecryption'),
            ),
        )

        param = result.get('Parameter', {})
        name = param.get('Name', '')
        param_type = param.get('Type', '')
        return build_response(
            200,
            result,
            body=to_json_bytes(map_parameter(param)),
            headers={
                'ssm.parameter_name': name,
                'ssm.parameter_type': param_type,
            },
            metadata={
                'ssm.parameter_name': name,
                'ssm.parameter_type': param_type,
                'ssm.version': param.get('Version', 0),
            },
        )

    def get_parameters(self, request: Request, ctx: Context) -> Response:
        """
        Fetch several parameters as a JSON object keyed by name.

        Names come from a JSON list body, or else from the comma-separated
        Names query parameter.
        """
        query = request.query_params or {}
        names: List[str] = []
        if request.body:
            names = json_body(request)
            if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
                raise invalid_request("invalid JSON body: expected a list of parameter names")
        elif 'Names' in query:
            names = _split_names(query['Names'])

        if not names:
            raise invalid_request("parameter names are required")

        result = call_native(
            ctx, 'ssm.get_parameters', normalize_ssm_error,
            lambda: self.client.get_parameters(
                Names=names,
                WithDecryption=is_true(query, 'WithDecryption'),
            ),
        )

        parameters = result.get('Parameters', [])
        mapped = {param.get('Name', ''): map_parameter(param) for param in parameters}
        return build_response(
            200,
            result,
            body=to_json_bytes(mapped),
            headers={'ssm.parameter_count': str(len(parameters))},
        )

    def put_parameter(self, request: Request, ctx: Context) -> Response:
        """
        Create or update a parameter.

        JSON body: value (required), type (default String), overwrite,
        description, tags (object of key to value).
        """
        if not request.path:
            raise invalid_request("parameter name is required")

        data = json_body(request)
        if not isinstance(data, dict) or not isinstance(data.get('value'), str):
            raise invalid_request("value is required")

        overwrite = data.get('overwrite')
        params: Dict[str, Any] = {
            'Name': request.path,
            'Value': data['value'],
            'Type': data.get('type') or DEFAULT_PARAMETER_TYPE,
            'Overwrite': overwrite if isinstance(overwrite, bool) else False,
        }
        if isinstance(data.get('description'), str) and data['description']:
            params['Description'] = data['description']
        tags = data.get('tags')
        if isinstance(tags, dict) and tags:
            params['Tags'] = [{'Key': key, 'Value': str(value)} for key, value in tags.items()]

        result = call_native(
            ctx, 'ssm.put_parameter', normalize_ssm_error,
            lambda: self.client.put_parameter(**params),
        )

        version = result.get('Version', 0)
        return build_response(
            200,
            result,
            headers={'ssm.version': str(version)},
            metadata={'ssm.version': version},
        )

    def delete_parameter(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("parameter name is required")

        result = call_native(
            ctx, 'ssm.delete_parameter', normalize_ssm_error,
            lambda: self.client.delete_parameter(Name=request.path),
        )
        return build_response(204, result)

    def get_parameters_by_path(self, request: Request, ctx: Context) -> Response:
        """List every parameter under a path prefix, following all pages."""
        if not request.path:
            raise invalid_request("parameter path is required")

        query = request.query_params or {}
        parameters = self._paginate(
            ctx, 'ssm.get_parameters_by_path', 'get_parameters_by_path', 'Parameters', map_parameter,
            Path=request.path,
            Recursive=is_true(query, 'Recursive'),
            WithDecryption=is_true(query, 'WithDecryption'),
        )
        return build_response(
            200,
            body=to_json_bytes(parameters),
            headers={'ssm.parameter_count': str(len(parameters))},
        )

    def get_parameter_history(self, request: Request, ctx: Context) -> Response:
        if not request.path:
            raise invalid_request("parameter name is required")

        history = self._paginate(
            ctx, 'ssm.get_parameter_history', 'get_parameter_history', 'Parameters', map_parameter_history,
            Name=request.path,
        )
        return build_response(
            200,
            body=to_json_bytes(history),
            headers={'ssm.history_count': str(len(history))},
        )

    def describe_parameters(self, request: Request, ctx: Context) -> Response:
        """Describe all parameters; query MaxResults sets the page size."""
        params: Dict[str, Any] = {}
        max_results = parse_int((request.query_params or {}).get('MaxResults'))
        if max_results is not None:
            params['PaginationConfig'] = {'PageSize': max_results}

        def _describe(param: Dict[str, Any]) -> Dict[str, Any]:
            return {
                'name': param.get('Name', ''),
                'type': param.get('Type', ''),
                'last_modified_date': param.get('LastModifiedDate'),
                'version': param.get('Version', 0),
            }

        parameters = self._paginate(
            ctx, 'ssm.describe_parameters', 'describe_parameters', 'Parameters', _describe,
            **params
        )
        return build_response(
            200,
            body=to_json_bytes(parameters),
            headers={'ssm.parameter_count': str(len(parameters))},
        )
