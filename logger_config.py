"""
Logging configuration for the cloud client.

This module provides a standardized logging setup that works well with
AWS Lambda and CloudWatch Logs. Structured fields passed through `extra=`
are appended to each line as key=value pairs.
"""
import logging
import os
import sys

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord('', 0, '', 0, '', (), None).__dict__.keys()
) | {'message', 'asctime'}


class FieldsFormatter(logging.Formatter):
    """Formatter that renders `extra=` fields after the message."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith('_')
        }
        if not fields:
            return line
        rendered = ' '.join(f'{key}={value}' for key, value in sorted(fields.items()))
        return f'{line} | {rendered}'


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (defaults to this module's name if not provided)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or __name__)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    # Set log level from environment variable, default to INFO
    log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Lambda sends stdout/stderr to CloudWatch
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)

    formatter = FieldsFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    return logger
