"""
MetricsRecorder that publishes to CloudWatch.
"""
import threading
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import boto3

if TYPE_CHECKING:
    from mypy_boto3_cloudwatch import CloudWatchClient
else:
    CloudWatchClient = Any


class CloudWatchMetricsRecorder:
    """Publishes request metrics with put_metric_data under one namespace."""

    def __init__(self, namespace: str, client: Optional[CloudWatchClient] = None) -> None:
        """
        Initialize recorder.

        Args:
            namespace: CloudWatch namespace for every metric
            client: CloudWatch client (created lazily if omitted)
        """
        self.namespace = namespace
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> CloudWatchClient:
        """Lazy initialization of CloudWatch client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = boto3.client('cloudwatch')
        return self._client

    @staticmethod
    def _dimensions(operation: str, status_code: Optional[int] = None, error_code: str = '') -> List[Dict[str, str]]:
        dimensions = [{'Name': 'Operation', 'Value': operation or 'unknown'}]
        if status_code is not None:
            dimensions.append({'Name': 'StatusCode', 'Value': str(status_code)})
        if error_code:
            dimensions.append({'Name': 'ErrorCode', 'Value': error_code})
        return dimensions

    def _put(self, metrics: List[Dict[str, Any]]) -> None:
        self.client.put_metric_data(Namespace=self.namespace, MetricData=metrics)

    def record_request(self, operation: str, duration: float, status_code: int, error_code: str) -> None:
        dimensions = self._dimensions(operation, status_code, error_code)
        metrics = [
            {'MetricName': 'aws.request.duration', 'Dimensions': dimensions, 'Value': duration, 'Unit': 'Seconds'},
            {'MetricName': 'aws.request.count', 'Dimensions': dimensions, 'Value': 1, 'Unit': 'Count'},
        ]
        if status_code >= 400:
            metrics.append(
                {'MetricName': 'aws.request.error', 'Dimensions': dimensions, 'Value': 1, 'Unit': 'Count'}
            )
        self._put(metrics)

    def record_retry(self, operation: str) -> None:
        self._put([{
            'MetricName': 'aws.request.retry',
            'Dimensions': self._dimensions(operation),
            'Value': 1,
            'Unit': 'Count',
        }])

    def record_throttle(self, operation: str) -> None:
        self._put([{
            'MetricName': 'aws.request.throttle',
            'Dimensions': self._dimensions(operation),
            'Value': 1,
            'Unit': 'Count',
        }])
