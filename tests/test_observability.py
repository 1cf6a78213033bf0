"""
Tests for the logging, metrics, tracing and retry middlewares and the
CloudWatch recorder.
"""
from contextlib import contextmanager
from unittest.mock import MagicMock, Mock

import boto3
import pytest
from moto import mock_aws
from tenacity import wait_none

from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from config import RetryPolicy
from observability import (
    CloudWatchMetricsRecorder,
    extract_service_verb,
    logging_middleware,
    metrics_middleware,
    retry_middleware,
    tracing_middleware,
)
from utils.exceptions import CloudError, ERR_CODE_SERVICE_UNAVAILABLE, ERR_CODE_THROTTLING
from conftest import StubClient


def success_response():
    return Response(
        status_code=200,
        body=b'{"secret":"payload"}',
        headers={'sqs.message_id': 'msg-1'},
        metadata={'aws_request_id': 'req-123'},
    )


class FakeSpan:
    def __init__(self):
        self.attributes = {}

    def set_attribute(self, key, value):
        self.attributes[key] = value


class FakeTracer:
    """Tracer recording span names, initial attributes and spans."""

    def __init__(self):
        self.spans = []

    @contextmanager
    def span(self, ctx, name, attributes):
        span = FakeSpan()
        span.attributes.update(attributes)
        self.spans.append((name, span))
        yield span


@pytest.mark.observability
class TestExtractServiceVerb:
    """Tests for extract_service_verb."""

    @pytest.mark.parametrize('operation,expected', [
        ('sqs.send_message', ('sqs', 'send_message')),
        ('s3.get_object.v2', ('s3', 'get_object')),
        ('sqs', ('sqs', '')),
        ('', ('', '')),
    ])
    def test_split(self, operation, expected):
        """Test the first two segments are used."""
        assert extract_service_verb(operation) == expected


@pytest.mark.observability
class TestLoggingMiddleware:
    """Tests for the logging middleware."""

    def test_success_passes_response_through(self):
        """Test the exact response object is returned."""
        inner = StubClient(response=success_response())
        logger = Mock()
        client = logging_middleware(logger)(inner)

        request = Request(operation='sqs.send_message', path='queue', body=b'{"secret":"payload"}')
        response = client.do(request)

        assert response is inner.response
        assert inner.calls[0][0] is request

    def test_success_log_fields(self):
        """Test an info record with structural fields and no body."""
        inner = StubClient(response=success_response())
        logger = Mock()
        logging_middleware(logger)(inner).do(
            Request(operation='sqs.send_message', path='queue', body=b'{"secret":"payload"}', method='POST')
        )

        logger.info.assert_called_once()
        message = logger.info.call_args.args[0]
        fields = logger.info.call_args.kwargs['extra']
        assert message == 'AWS operation completed: sqs.send_message'
        assert fields['operation'] == 'sqs.send_message'
        assert fields['service'] == 'sqs'
        assert fields['verb'] == 'send_message'
        assert fields['path'] == 'queue'
        assert fields['method'] == 'POST'
        assert fields['success'] is True
        assert fields['status_code'] == 200
        assert fields['aws_request_id'] == 'req-123'
        assert fields['duration_ms'] >= 0
        assert fields['start_time']
        assert len(fields['request_id']) == 36
        assert 'secret' not in repr(fields)
        assert 'body' not in fields

    def test_method_omitted_when_empty(self):
        """Test method is only logged for inbound-style requests."""
        logger = Mock()
        logging_middleware(logger)(StubClient()).do(Request(operation='sqs.list_queues'))
        assert 'method' not in logger.info.call_args.kwargs['extra']

    def test_request_ids_unique(self):
        """Test each call gets its own request id."""
        logger = Mock()
        client = logging_middleware(logger)(StubClient())
        client.do(Request(operation='sqs.list_queues'))
        client.do(Request(operation='sqs.list_queues'))
        first, second = (call.kwargs['extra']['request_id'] for call in logger.info.call_args_list)
        assert first != second

    def test_cloud_error_logged_and_reraised(self):
        """Test the same error instance propagates with error fields logged."""
        err = CloudError(ERR_CODE_THROTTLING, 'slow down', retriable=True)
        logger = Mock()
        client = logging_middleware(logger)(StubClient(error=err))

        with pytest.raises(CloudError) as exc_info:
            client.do(Request(operation='sns.publish', path='arn'))

        assert exc_info.value is err
        logger.info.assert_not_called()
        fields = logger.error.call_args.kwargs['extra']
        assert fields['success'] is False
        assert fields['error_code'] == ERR_CODE_THROTTLING
        assert fields['error_message'] == 'slow down'
        assert fields['retriable'] is True
        assert fields['status_code'] == 429
        assert 'duration_ms' in fields

    def test_foreign_error_classified_as_500(self):
        """Test errors outside the normalized shape get a generic status."""
        err = RuntimeError('unexpected')
        logger = Mock()
        client = logging_middleware(logger)(StubClient(error=err))

        with pytest.raises(RuntimeError) as exc_info:
            client.do(Request(operation='sns.publish'))

        assert exc_info.value is err
        fields = logger.error.call_args.kwargs['extra']
        assert fields['status_code'] == 500
        assert fields['error_message'] == 'unexpected'
        assert 'error_code' not in fields

    def test_default_logger(self):
        """Test a logger is created when none is given."""
        middleware = logging_middleware()(StubClient())
        assert middleware.logger is not None


@pytest.mark.observability
class TestMetricsMiddleware:
    """Tests for the metrics middleware."""

    def test_success_recorded(self):
        """Test duration, status and an empty error code."""
        recorder = Mock()
        inner = StubClient(response=success_response())
        response = metrics_middleware(recorder)(inner).do(Request(operation='sqs.send_message'))

        assert response is inner.response
        operation, duration, status_code, error_code = recorder.record_request.call_args.args
        assert operation == 'sqs.send_message'
        assert duration >= 0
        assert status_code == 200
        assert error_code == ''
        recorder.record_throttle.assert_not_called()

    def test_throttle_counted(self):
        """Test throttling adds a throttle record on top of the request record."""
        recorder = Mock()
        err = CloudError(ERR_CODE_THROTTLING, 'slow down', retriable=True)

        with pytest.raises(CloudError) as exc_info:
            metrics_middleware(recorder)(StubClient(error=err)).do(Request(operation='sns.publish'))

        assert exc_info.value is err
        recorder.record_throttle.assert_called_once_with('sns.publish')
        _, _, status_code, error_code = recorder.record_request.call_args.args
        assert status_code == 429
        assert error_code == ERR_CODE_THROTTLING

    def test_other_error_not_throttle(self):
        """Test non-throttling errors only get the request record."""
        recorder = Mock()
        err = CloudError('sqs.send_message.error', 'boom')

        with pytest.raises(CloudError):
            metrics_middleware(recorder)(StubClient(error=err)).do(Request(operation='sqs.send_message'))

        recorder.record_throttle.assert_not_called()
        assert recorder.record_request.call_args.args[2:] == (500, 'sqs.send_message.error')

    def test_recorder_failure_does_not_fail_call(self):
        """Test a broken recorder never changes the outcome."""
        recorder = Mock()
        recorder.record_request.side_effect = RuntimeError('metrics backend down')
        inner = StubClient(response=success_response())

        response = metrics_middleware(recorder)(inner).do(Request(operation='sqs.send_message'))

        assert response is inner.response


@pytest.mark.observability
class TestTracingMiddleware:
    """Tests for the tracing middleware."""

    def test_no_tracer_is_pass_through(self):
        """Test a None tracer calls next directly."""
        inner = StubClient(response=success_response())
        client = tracing_middleware(None)(inner)
        ctx = Context.background()

        response = client.do(Request(operation='sqs.send_message'), ctx)

        assert response is inner.response
        assert inner.calls[0][1] is ctx

    def test_span_attributes_on_success(self):
        """Test the span name and attributes."""
        tracer = FakeTracer()
        inner = StubClient(response=success_response())

        response = tracing_middleware(tracer)(inner).do(
            Request(operation='s3.get_object', path='bucket/key', method='GET')
        )

        assert response is inner.response
        name, span = tracer.spans[0]
        assert name == 's3.get_object'
        assert span.attributes == {
            'aws.service': 's3',
            'aws.operation': 'get_object',
            'aws.path': 'bucket/key',
            'http.method': 'GET',
            'http.status_code': 200,
            'aws.request_id': 'req-123',
        }

    def test_span_attributes_on_error(self):
        """Test error attributes are attached and the error propagates."""
        tracer = FakeTracer()
        err = CloudError(ERR_CODE_SERVICE_UNAVAILABLE, 'down', retriable=True)

        with pytest.raises(CloudError) as exc_info:
            tracing_middleware(tracer)(StubClient(error=err)).do(Request(operation='lambda.invoke', path='fn'))

        assert exc_info.value is err
        _, span = tracer.spans[0]
        assert span.attributes['aws.error_code'] == ERR_CODE_SERVICE_UNAVAILABLE
        assert span.attributes['aws.retriable'] is True
        assert 'http.status_code' not in span.attributes

    def test_span_attribute_failure_ignored(self):
        """Test a failing span never changes the outcome."""
        span = MagicMock()
        span.set_attribute.side_effect = RuntimeError('exporter down')
        tracer = MagicMock()
        tracer.span.return_value.__enter__.return_value = span
        tracer.span.return_value.__exit__.return_value = False
        inner = StubClient(response=success_response())

        response = tracing_middleware(tracer)(inner).do(Request(operation='sqs.send_message'))

        assert response is inner.response

    def test_span_open_failure_runs_call_untraced(self):
        """Test a tracer that cannot open spans still lets the call through once."""
        tracer = Mock()
        tracer.span.side_effect = RuntimeError('tracer backend down')
        inner = StubClient(response=success_response())

        response = tracing_middleware(tracer)(inner).do(Request(operation='sqs.send_message'))

        assert response is inner.response
        assert len(inner.calls) == 1

    def test_span_enter_failure_runs_call_untraced(self):
        """Test a span whose __enter__ fails still lets the call through once."""
        tracer = MagicMock()
        tracer.span.return_value.__enter__.side_effect = RuntimeError('exporter down')
        err = CloudError(ERR_CODE_THROTTLING, 'slow down', retriable=True)
        inner = StubClient(error=err)

        with pytest.raises(CloudError) as exc_info:
            tracing_middleware(tracer)(inner).do(Request(operation='sns.publish'))

        assert exc_info.value is err
        assert len(inner.calls) == 1
        tracer.span.return_value.__exit__.assert_not_called()


@pytest.mark.observability
class TestRetryMiddleware:
    """Tests for the retry decorator."""

    @staticmethod
    def policy(max_attempts=3):
        return RetryPolicy(
            enabled=True,
            max_attempts=max_attempts,
            retriable_errors=[ERR_CODE_THROTTLING, ERR_CODE_SERVICE_UNAVAILABLE],
        )

    def test_retries_until_success(self):
        """Test a retriable failure is re-attempted."""
        response = success_response()
        inner = Mock()
        inner.do.side_effect = [CloudError(ERR_CODE_THROTTLING, 'slow down', retriable=True), response]
        recorder = Mock()

        result = retry_middleware(self.policy(), recorder, wait=wait_none())(inner).do(
            Request(operation='sqs.send_message')
        )

        assert result is response
        assert inner.do.call_count == 2
        recorder.record_retry.assert_called_once_with('sqs.send_message')

    def test_gives_up_after_max_attempts(self):
        """Test the last error instance is raised after the final attempt."""
        errors = [CloudError(ERR_CODE_THROTTLING, f'attempt {n}', retriable=True) for n in range(3)]
        inner = Mock()
        inner.do.side_effect = errors

        with pytest.raises(CloudError) as exc_info:
            retry_middleware(self.policy(), wait=wait_none())(inner).do(Request(operation='sns.publish'))

        assert exc_info.value is errors[-1]
        assert inner.do.call_count == 3

    def test_non_retriable_code_not_retried(self):
        """Test codes outside the policy fail immediately."""
        err = CloudError('sqs.send_message.error', 'boom')
        inner = StubClient(error=err)

        with pytest.raises(CloudError) as exc_info:
            retry_middleware(self.policy(), wait=wait_none())(inner).do(Request(operation='sqs.send_message'))

        assert exc_info.value is err
        assert len(inner.calls) == 1

    def test_cancelled_context_not_retried(self):
        """Test nothing is re-attempted once the caller cancelled."""
        inner = StubClient(error=CloudError(ERR_CODE_THROTTLING, 'slow down', retriable=True))
        ctx = Context.background().with_cancel()
        ctx.cancel()

        with pytest.raises(CloudError):
            retry_middleware(self.policy(), wait=wait_none())(inner).do(Request(operation='sqs.send_message'), ctx)

        assert len(inner.calls) == 1

    def test_same_context_each_attempt(self):
        """Test each attempt receives the caller's context for the layer below to bound."""
        inner = Mock()
        inner.do.side_effect = [CloudError(ERR_CODE_THROTTLING, 'slow down'), success_response()]
        ctx = Context.background()

        retry_middleware(self.policy(), wait=wait_none())(inner).do(Request(operation='sqs.send_message'), ctx)

        assert all(call.args[1] is ctx for call in inner.do.call_args_list)


@pytest.mark.observability
class TestCloudWatchMetricsRecorder:
    """Tests for CloudWatchMetricsRecorder."""

    def test_record_request_error(self):
        """Test error requests publish duration, count and error metrics."""
        client = Mock()
        recorder = CloudWatchMetricsRecorder('CloudClient', client=client)

        recorder.record_request('sqs.send_message', 0.25, 429, ERR_CODE_THROTTLING)

        kwargs = client.put_metric_data.call_args.kwargs
        assert kwargs['Namespace'] == 'CloudClient'
        names = [metric['MetricName'] for metric in kwargs['MetricData']]
        assert names == ['aws.request.duration', 'aws.request.count', 'aws.request.error']
        assert kwargs['MetricData'][0]['Value'] == 0.25
        assert kwargs['MetricData'][0]['Dimensions'] == [
            {'Name': 'Operation', 'Value': 'sqs.send_message'},
            {'Name': 'StatusCode', 'Value': '429'},
            {'Name': 'ErrorCode', 'Value': ERR_CODE_THROTTLING},
        ]

    def test_record_request_success(self):
        """Test successful requests publish no error metric."""
        client = Mock()
        CloudWatchMetricsRecorder('CloudClient', client=client).record_request('sqs.send_message', 0.1, 200, '')

        metrics = client.put_metric_data.call_args.kwargs['MetricData']
        assert [metric['MetricName'] for metric in metrics] == ['aws.request.duration', 'aws.request.count']
        assert {'Name': 'ErrorCode', 'Value': ''} not in metrics[0]['Dimensions']

    @mock_aws()
    def test_publishes_to_cloudwatch(self):
        """Test metrics land in CloudWatch."""
        cloudwatch = boto3.client('cloudwatch', region_name='us-east-1')
        recorder = CloudWatchMetricsRecorder('CloudClient', client=cloudwatch)

        recorder.record_retry('sqs.send_message')
        recorder.record_throttle('sqs.send_message')

        names = {metric['MetricName'] for metric in cloudwatch.list_metrics(Namespace='CloudClient')['Metrics']}
        assert names == {'aws.request.retry', 'aws.request.throttle'}

    def test_full_chain_with_recorder_failure(self):
        """Test a failing CloudWatch client does not fail the call."""
        client = Mock()
        client.put_metric_data.side_effect = RuntimeError('no network')
        inner = StubClient(response=success_response())

        response = metrics_middleware(CloudWatchMetricsRecorder('CloudClient', client=client))(inner).do(
            Request(operation='sqs.send_message')
        )

        assert response is inner.response
