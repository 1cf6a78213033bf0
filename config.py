"""
Configuration module for environment variable validation and type-safe config.

This module reads the cloud client settings from the environment and
provides a type-safe configuration object.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

import boto3

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class RetryPolicy:
    """Retry settings; disabled by default."""

    enabled: bool = False
    max_attempts: int = 0
    retriable_errors: List[str] = field(default_factory=list)


@dataclass
class Config:
    """Type-safe configuration object with validated environment variables."""

    aws_region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: str = "INFO"
    aws_profile: Optional[str] = None
    aws_access_key_id: Optional[str] = field(default=None, repr=False)
    aws_secret_access_key: Optional[str] = field(default=None, repr=False)
    aws_session_token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create Config instance from environment variables.

        Raises:
            ValueError: If an environment variable holds an invalid value.
        """
        timeout_raw = os.environ.get("CLOUD_CLIENT_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"CLOUD_CLIENT_TIMEOUT must be a number of seconds, got: {timeout_raw}"
            )
        if timeout < 0:
            raise ValueError(
                f"CLOUD_CLIENT_TIMEOUT must not be negative, got: {timeout_raw}"
            )

        retry_enabled_raw = os.environ.get("CLOUD_CLIENT_RETRY_ENABLED", "false").lower()
        if retry_enabled_raw not in {"true", "false"}:
            raise ValueError(
                f"CLOUD_CLIENT_RETRY_ENABLED must be 'true' or 'false', got: {retry_enabled_raw}"
            )

        max_attempts_raw = os.environ.get(
            "CLOUD_CLIENT_RETRY_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS)
        )
        try:
            max_attempts = int(max_attempts_raw)
        except ValueError:
            raise ValueError(
                f"CLOUD_CLIENT_RETRY_MAX_ATTEMPTS must be an integer, got: {max_attempts_raw}"
            )
        if max_attempts < 0:
            raise ValueError(
                f"CLOUD_CLIENT_RETRY_MAX_ATTEMPTS must not be negative, got: {max_attempts_raw}"
            )

        retriable_errors = [
            code.strip()
            for code in os.environ.get("CLOUD_CLIENT_RETRY_ERRORS", "").split(",")
            if code.strip()
        ]

        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

        # Validate log level
        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_log_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {valid_log_levels}, got: {log_level}"
            )

        return cls(
            aws_region=os.environ.get("AWS_REGION", "us-east-1"),
            endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
            timeout=timeout,
            retry_policy=RetryPolicy(
                enabled=retry_enabled_raw == "true",
                max_attempts=max_attempts,
                retriable_errors=retriable_errors,
            ),
            log_level=log_level,
            aws_profile=os.environ.get("AWS_PROFILE") or None,
            aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID") or None,
            aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY") or None,
            aws_session_token=os.environ.get("AWS_SESSION_TOKEN") or None,
        )


def build_session(config: Config) -> boto3.session.Session:
    """
    Build the boto3 session for a config and take ownership of its credentials.

    The credentials are moved into the session and cleared from the config,
    so the config can be logged or serialized without leaking them.

    Args:
        config: Client configuration; its credential fields are reset to None

    Returns:
        A boto3 session bound to the configured region
    """
    session = boto3.session.Session(
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
        aws_session_token=config.aws_session_token,
        region_name=config.aws_region,
        profile_name=config.aws_profile,
    )
    config.aws_access_key_id = None
    config.aws_secret_access_key = None
    config.aws_session_token = None
    return session


# Global config instance - built lazily on first use
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Config: The validated configuration object

    Raises:
        ValueError: If an environment variable holds an invalid value.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
