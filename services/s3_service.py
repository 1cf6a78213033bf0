"""
S3 adapter for object storage operations.
"""
import threading
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from utils.exceptions import CloudError
from utils.serialization import to_json_bytes
from .errors import call_native, client_error_code, normalize_aws_error, normalize_not_found
from .marshal import build_response, invalid_request, parse_int, prefixed, unsupported_operation
from .provider import Provider

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
else:
    S3Client = Any

METADATA_PREFIX = 's3.metadata.'
_NOT_FOUND_CODES = {'NoSuchKey', 'NoSuchBucket', 'NotFound', '404'}


def parse_s3_path(path: str) -> Tuple[str, str]:
    """
    Split "bucket/key" into its parts.

    Only the first slash separates; the key keeps any further slashes.
    A path without a slash yields an empty key.
    """
    bucket, _, key = path.partition('/')
    return bucket, key


def normalize_s3_error(err: Optional[BaseException], operation: str) -> Optional[CloudError]:
    """
    Convert an S3 SDK error into a CloudError.

    Missing buckets and keys become aws.not_found; everything else follows
    normalize_aws_error.
    """
    if err is None:
        return None
    if client_error_code(err) in _NOT_FOUND_CODES:
        return normalize_not_found(err, f"S3 resource not found: {str(err)}")
    return normalize_aws_error(err, operation)


class S3Service:
    """Adapter for S3 operations."""

    def __init__(self, provider: Optional[Provider] = None) -> None:
        """
        Initialize S3 adapter.

        Args:
            provider: Source of the boto3 client
        """
        self._provider = provider or Provider()
        self._client: Optional[S3Client] = None
        self._client_lock = threading.Lock()
        self._operations = {
            's3.put_object': self.put_object,
            's3.get_object': self.get_object,
            's3.delete_object': self.delete_object,
            's3.head_object': self.head_object,
            's3.list_objects': self.list_objects,
            's3.copy_object': self.copy_object,
        }

    @property
    def client(self) -> S3Client:
        """Lazy initialization of S3 client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._provider.create_client('s3')
        return self._client

    def do(self, request: Request, ctx: Optional[Context] = None) -> Response:
        handler = self._operations.get(request.operation)
        if handler is None:
            raise unsupported_operation('S3', request.operation)
        return handler(request, ctx or Context.background())

    @staticmethod
    def _object_path(request: Request, expected: str = 'bucket/key') -> Tuple[str, str]:
        bucket, key = parse_s3_path(request.path)
        if not bucket or not key:
            raise invalid_request(f"path must be in format '{expected}'")
        return bucket, key

    @staticmethod
    def _object_headers(result: Dict[str, Any]) -> Dict[str, str]:
        headers = {}
        if result.get('ContentType') is not None:
            headers['s3.content_type'] = result['ContentType']
        if result.get('ContentLength') is not None:
            headers['s3.content_length'] = str(result['ContentLength'])
        if result.get('ETag') is not None:
            headers['s3.etag'] = result['ETag']
        return headers

    @staticmethod
    def _object_metadata(result: Dict[str, Any]) -> Dict[str, Any]:
        return {
            's3.content_type': result.get('ContentType', ''),
            's3.content_length': result.get('ContentLength'),
            's3.etag': result.get('ETag', ''),
            's3.last_modified': result.get('LastModified'),
        }

    def put_object(self, request: Request, ctx: Context) -> Response:
        """
        Upload the body to "bucket/key".

        Headers: s3.content_type, s3.acl, s3.metadata.<name>.
        """
        bucket, key = self._object_path(request)

        params: Dict[str, Any] = {
            'Bucket': bucket,
            'Key': key,
            'Body': request.body,
        }
        headers = request.headers or {}
        if 's3.content_type' in headers:
            params['ContentType'] = headers['s3.content_type']
        if 's3.acl' in headers:
            params['ACL'] = headers['s3.acl']
        metadata = prefixed(headers, METADATA_PREFIX)
        if metadata:
            params['Metadata'] = metadata

        result = call_native(
            ctx, 's3.put_object', normalize_s3_error,
            lambda: self.client.put_object(**params),
        )

        etag = result.get('ETag', '')
        return build_response(
            200,
            result,
            headers={'s3.etag': etag},
            metadata={
                's3.etag': etag,
                's3.version_id': result.get('VersionId', ''),
                's3.server_side_encryption': result.get('ServerSideEncryption', ''),
            },
        )

    def get_object(self, request: Request, ctx: Context) -> Response:
        bucket, key = self._object_path(request)

        def _get() -> Dict[str, Any]:
            result = self.client.get_object(Bucket=bucket, Key=key)
            stream = result['Body']
            try:
                result['Body'] = stream.read()
            finally:
                stream.close()
            return result

        result = call_native(ctx, 's3.get_object', normalize_s3_error, _get)

        return build_response(
            200,
            result,
            body=result['Body'],
            headers=self._object_headers(result),
            metadata=self._object_metadata(result),
        )

    def delete_object(self, request: Request, ctx: Context) -> Response:
        bucket, key = self._object_path(request)

        result = call_native(
            ctx, 's3.delete_object', normalize_s3_error,
            lambda: self.client.delete_object(Bucket=bucket, Key=key),
        )
        return build_response(204, result)

    def head_object(self, request: Request, ctx: Context) -> Response:
        bucket, key = self._object_path(request)

        result = call_native(
            ctx, 's3.head_object', normalize_s3_error,
            lambda: self.client.head_object(Bucket=bucket, Key=key),
        )
        return build_response(
            200,
            result,
            headers=self._object_headers(result),
            metadata=self._object_metadata(result),
        )

    def list_objects(self, request: Request, ctx: Context) -> Response:
        """List objects under "bucket" or "bucket/prefix" as a JSON list."""
        bucket, prefix = parse_s3_path(request.path)
        if not bucket:
            raise invalid_request("bucket name is required")

        params: Dict[str, Any] = {'Bucket': bucket}
        if prefix:
            params['Prefix'] = prefix
        query = request.query_params or {}
        max_keys = parse_int(query.get('MaxKeys'))
        if max_keys is not None:
            params['MaxKeys'] = max_keys
        if 'Delimiter' in query:
            params['Delimiter'] = query['Delimiter']

        result = call_native(
            ctx, 's3.list_objects', normalize_s3_error,
            lambda: self.client.list_objects_v2(**params),
        )

        objects = [
            {
                'key': obj.get('Key', ''),
                'size': obj.get('Size', 0),
                'last_modified': obj.get('LastModified'),
                'etag': obj.get('ETag', ''),
            }
            for obj in result.get('Contents', [])
        ]
        return build_response(
            200,
            result,
            body=to_json_bytes(objects),
            headers={'s3.object_count': str(len(objects))},
        )

    def copy_object(self, request: Request, ctx: Context) -> Response:
        """
        Copy an object to "destBucket/destKey".

        The source comes from the s3.source_bucket and s3.source_key headers.
        """
        dest_bucket, dest_key = self._object_path(request, 'destBucket/destKey')
        headers = request.headers or {}
        if 's3.source_bucket' not in headers:
            raise invalid_request("s3.source_bucket header is required")
        if 's3.source_key' not in headers:
            raise invalid_request("s3.source_key header is required")

        copy_source = {'Bucket': headers['s3.source_bucket'], 'Key': headers['s3.source_key']}
        result = call_native(
            ctx, 's3.copy_object', normalize_s3_error,
            lambda: self.client.copy_object(Bucket=dest_bucket, Key=dest_key, CopySource=copy_source),
        )

        copy_source_version = result.get('CopySourceVersionId', '')
        version_id = result.get('VersionId', '')
        metadata: Dict[str, Any] = {
            's3.copy_source_version_id': copy_source_version,
            's3.version_id': version_id,
        }
        etag = (result.get('CopyObjectResult') or {}).get('ETag')
        if etag:
            metadata['s3.etag'] = etag
        return build_response(
            200,
            result,
            headers={
                's3.copy_source_version_id': copy_source_version,
                's3.version_id': version_id,
            },
            metadata=metadata,
        )
