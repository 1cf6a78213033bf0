"""
Bounded re-attempts of retriable failures, as an outer client decorator.
"""
from typing import Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from cloud.client import Client, Middleware
from cloud.context import Context
from cloud.request import Request
from cloud.response import Response
from config import RetryPolicy
from logger_config import get_logger
from utils.exceptions import CloudError
from .metrics_middleware import MetricsRecorder, safe_record

logger = get_logger(__name__)


class RetryMiddleware:
    """
    Re-invokes the next client when it fails with a retriable error code.

    Every attempt goes through the next layer afresh, so a dispatcher below
    derives a new timeout for each attempt. Nothing is retried once the
    caller's context is done.
    """

    def __init__(
        self,
        next_client: Client,
        policy: RetryPolicy,
        recorder: Optional[MetricsRecorder] = None,
        wait: Optional[wait_base] = None
    ) -> None:
        """
        Initialize retry middleware.

        Args:
            next_client: Client to re-invoke
            policy: Attempts and retriable error codes
            recorder: Optional metrics sink notified before each re-attempt
            wait: tenacity wait strategy (exponential backoff by default)
        """
        self.next = next_client
        self.policy = policy
        self.recorder = recorder
        self.wait = wait if wait is not None else wait_exponential(multiplier=0.1, max=2)

    def _should_retry(self, err: BaseException, ctx: Context) -> bool:
        return (
            isinstance(err, CloudError)
            and err.code in self.policy.retriable_errors
            and ctx.err() is None
        )

    def do(self, request: Optional[Request], ctx: Optional[Context] = None) -> Response:
        ctx = ctx or Context.background()
        operation = request.operation if request is not None else ''

        def before_sleep(state: RetryCallState) -> None:
            logger.info(
                f'Retrying {operation} after attempt {state.attempt_number}',
                extra={'operation': operation, 'attempt': state.attempt_number},
            )
            if self.recorder is not None:
                safe_record('record_retry', self.recorder, operation)

        retrying = Retrying(
            stop=stop_after_attempt(max(1, self.policy.max_attempts)),
            wait=self.wait,
            retry=retry_if_exception(lambda e: self._should_retry(e, ctx)),
            before_sleep=before_sleep,
            reraise=True,
        )
        return retrying(self.next.do, request, ctx)


def retry_middleware(
    policy: RetryPolicy,
    recorder: Optional[MetricsRecorder] = None,
    wait: Optional[wait_base] = None
) -> Middleware:
    """Middleware that retries failures whose code is in `policy.retriable_errors`."""
    return lambda next_client: RetryMiddleware(next_client, policy, recorder, wait)
