"""
Shared boto3 session and client settings for the service adapters.
"""
import threading
from typing import Any, Optional

import boto3
from botocore.config import Config as BotocoreConfig


class Provider:
    """Creates boto3 clients for the adapters from one session."""

    def __init__(
        self,
        session: Optional[boto3.session.Session] = None,
        client_config: Optional[BotocoreConfig] = None,
        endpoint_url: Optional[str] = None
    ) -> None:
        """
        Initialize the provider.

        Args:
            session: boto3 session (a default session is created lazily if omitted)
            client_config: botocore client settings applied to every client
            endpoint_url: Optional endpoint override (e.g. LocalStack)
        """
        self._session = session
        self.client_config = client_config
        self.endpoint_url = endpoint_url
        # boto3 sessions are not thread-safe; clients are
        self._lock = threading.Lock()

    @classmethod
    def with_timeout(
        cls,
        session: Optional[boto3.session.Session],
        timeout: float,
        endpoint_url: Optional[str] = None
    ) -> "Provider":
        """Build a provider whose clients use `timeout` for connect and read."""
        client_config = BotocoreConfig(retries={'max_attempts': 3, 'mode': 'standard'})
        if timeout > 0:
            client_config = client_config.merge(
                BotocoreConfig(connect_timeout=timeout, read_timeout=timeout)
            )
        return cls(session=session, client_config=client_config, endpoint_url=endpoint_url)

    def create_client(self, service_name: str) -> Any:
        """Create a boto3 client for a service."""
        with self._lock:
            if self._session is None:
                self._session = boto3.session.Session()
            kwargs = {}
            if self.client_config is not None:
                kwargs['config'] = self.client_config
            if self.endpoint_url:
                kwargs['endpoint_url'] = self.endpoint_url
            return self._session.client(service_name, **kwargs)
