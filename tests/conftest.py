"""
Shared fixtures: fake AWS credentials so no test can reach a real account.
"""
import os
import sys

import pytest

# Add parent directory to path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cloud.context import Context
from cloud.response import Response
from services.provider import Provider


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials and region for moto."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.setenv('AWS_REGION', 'us-east-1')
    monkeypatch.delenv('AWS_PROFILE', raising=False)
    monkeypatch.delenv('AWS_ENDPOINT_URL', raising=False)


@pytest.fixture(autouse=True)
def reset_config():
    """Drop the cached config so each test reads its own environment."""
    import config
    config._config = None
    yield
    config._config = None


@pytest.fixture
def mock_provider():
    """Provider whose create_client returns a Mock client."""
    from unittest.mock import Mock
    provider = Mock(spec=Provider)
    provider.create_client.return_value = Mock()
    return provider


class StubClient:
    """Client that records every call and returns a fixed response or raises."""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else Response(status_code=200, body=b'ok')
        self.error = error
        self.calls = []

    def do(self, request, ctx=None):
        self.calls.append((request, ctx))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def stub_client():
    return StubClient()


@pytest.fixture
def background():
    return Context.background()
