"""
Factory for the AWS cloud client.

new() gives a client with conservative defaults: a 30 second timeout and no
retries. new_with_options() layers an opt-in retry decorator and any
middlewares on top of the dispatcher.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from cloud.client import Client, Middleware, apply_middlewares
from config import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_SECONDS,
    Config,
    RetryPolicy,
    build_session,
    get_config,
)
from logger_config import get_logger
from observability import (
    MetricsRecorder,
    Tracer,
    logging_middleware,
    metrics_middleware,
    retry_middleware,
    tracing_middleware,
)
from services.dispatcher import Dispatcher
from utils.exceptions import ERR_CODE_SERVICE_UNAVAILABLE, ERR_CODE_THROTTLING

logger = get_logger(__name__)


@dataclass
class Options:
    """
    Client customization; every field is optional.

    Attributes:
        middlewares: Applied in list order, so the last one is outermost
        timeout: Default per-call timeout in seconds; 0 means 30 seconds
        retry_policy: Retries are off unless enabled here
        recorder: Receives record_retry before each re-attempt when retries are on
    """

    middlewares: List[Middleware] = field(default_factory=list)
    timeout: float = 0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    recorder: Optional[MetricsRecorder] = None


def new(config: Optional[Config] = None) -> Client:
    """Create a client with default options."""
    return new_with_options(config, Options())


def new_with_options(config: Optional[Config], options: Options) -> Client:
    """
    Create a client with custom options.

    Args:
        config: Client configuration (the environment config if omitted).
            Its credentials are moved into the boto3 session.
        options: Timeout, retry policy and middlewares

    Returns:
        The dispatcher, wrapped by the retry decorator when enabled and then
        by each middleware
    """
    config = config or get_config()

    timeout = options.timeout or DEFAULT_TIMEOUT_SECONDS
    retries = RetryPolicy(
        enabled=options.retry_policy.enabled,
        max_attempts=options.retry_policy.max_attempts or DEFAULT_MAX_ATTEMPTS,
        retriable_errors=list(options.retry_policy.retriable_errors),
    )

    client: Client = Dispatcher(
        session=build_session(config),
        timeout=timeout,
        retries=retries,
        endpoint_url=config.endpoint_url,
    )
    if retries.enabled:
        client = retry_middleware(retries, options.recorder)(client)

    logger.debug(
        'Cloud client created',
        extra={
            'region': config.aws_region,
            'timeout': timeout,
            'retry_enabled': retries.enabled,
            'middleware_count': len(options.middlewares),
        },
    )
    return apply_middlewares(client, options.middlewares)


def from_config(config: Optional[Config] = None) -> Client:
    """
    Create a client whose timeout and retry policy come from `config`.

    Unlike new(), which ignores the config's client settings, this honours
    CLOUD_CLIENT_TIMEOUT and the CLOUD_CLIENT_RETRY_* variables.
    """
    config = config or get_config()
    return new_with_options(config, Options(timeout=config.timeout, retry_policy=config.retry_policy))


def with_retry() -> Options:
    """Options enabling 3 attempts on throttling and service-unavailable errors."""
    return Options(
        retry_policy=RetryPolicy(
            enabled=True,
            max_attempts=3,
            retriable_errors=[ERR_CODE_THROTTLING, ERR_CODE_SERVICE_UNAVAILABLE],
        ),
    )


def with_observability(
    logger: Optional[logging.Logger] = None,
    recorder: Optional[MetricsRecorder] = None,
    tracer: Optional[Tracer] = None
) -> Options:
    """Options holding logging, metrics and tracing middlewares for the given collaborators."""
    middlewares: List[Middleware] = []
    if logger is not None:
        middlewares.append(logging_middleware(logger))
    if recorder is not None:
        middlewares.append(metrics_middleware(recorder))
    if tracer is not None:
        middlewares.append(tracing_middleware(tracer))
    return Options(middlewares=middlewares, recorder=recorder)
