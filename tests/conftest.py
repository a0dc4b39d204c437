"""Global fixtures and pytest configuration.

- Blocks real HTTP traffic from requests sessions
- Provides a scripted request executor standing in for the network
- Exposes configuration fixtures and a shared CliRunner for CLI tests
"""

import threading
from typing import Any, Callable, List, Optional, Tuple
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from src.channels.payload import ChannelPayload
from src.channels.request import RequestDescriptor
from src.channels.results import HTTPResponse
from src.services import ChannelAPIClient
from src.services.config_schema import FullConfig
from src.services.request_engine import Completion


@pytest.fixture(autouse=True)
def block_real_requests():
    """Prevent any outgoing HTTP request through requests.Session during tests."""
    with patch("requests.Session.request") as mock_request:
        mock_request.return_value.status_code = 200
        mock_request.return_value.text = "MOCKED"
        mock_request.return_value.headers = {}
        yield mock_request


class FakeHandle:
    def __init__(self, descriptor: RequestDescriptor):
        self.descriptor = descriptor
        self.cancelled = False


class FakeRequestEngine:
    """Request executor whose completions are triggered by the test."""

    def __init__(self):
        self.submitted: List[Tuple[FakeHandle, Callable[[Completion], None]]] = []
        self.cancelled: List[FakeHandle] = []
        self._lock = threading.Lock()

    def submit(self, descriptor, on_complete):
        handle = FakeHandle(descriptor)
        with self._lock:
            self.submitted.append((handle, on_complete))
        return handle

    def cancel(self, handle):
        with self._lock:
            handle.cancelled = True
            self.cancelled.append(handle)

    def respond(
        self,
        index: int = -1,
        status: int = 200,
        body: str = "",
        headers: Optional[dict] = None,
        error: Optional[BaseException] = None,
        ignore_cancel: bool = False,
    ) -> bool:
        """Complete a submission; cancelled ones are skipped unless ignore_cancel."""
        handle, on_complete = self.submitted[index]
        if handle.cancelled and not ignore_cancel:
            return False
        if error is not None:
            on_complete(Completion(error=error))
        else:
            on_complete(
                Completion(response=HTTPResponse(status, body, headers or {}))
            )
        return True


class CallbackRecorder:
    """Collects callback invocations from any thread."""

    def __init__(self):
        self.successes: List[Tuple[Any, ...]] = []
        self.failures: List[Any] = []
        self._lock = threading.Lock()

    def on_success(self, *args):
        with self._lock:
            self.successes.append(args)

    def on_failure(self, failure):
        with self._lock:
            self.failures.append(failure)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)


@pytest.fixture
def fake_engine():
    return FakeRequestEngine()


@pytest.fixture
def client(fake_engine):
    return ChannelAPIClient.with_request_engine(fake_engine)


@pytest.fixture
def recorder():
    return CallbackRecorder()


@pytest.fixture
def payload():
    return ChannelPayload(
        push_address="a1b2c3",
        opt_in=True,
        tags=("news", "sports"),
        set_tags=True,
        timezone="Europe/Paris",
    )


@pytest.fixture
def valid_config():
    """Fixture for a valid client configuration."""
    return FullConfig.model_validate(
        {
            "api": {
                "base_url": "https://device-api.example.com",
                "app_key": "app-key",
                "app_secret": "app-secret",
                "timeout": 5,
                "retry_count": 2,
                "retry_delay": 0,
                "max_workers": 2,
            },
            "payload_defaults": {"device_type": "ios", "locale_language": "fr"},
        }
    )


@pytest.fixture
def config_file(valid_config, tmp_path):
    """Fixture for a temporary configuration file."""
    config_path = tmp_path / "test_config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(valid_config.model_dump(mode="json"), f)
    return str(config_path)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """No credential overrides from the developer environment."""
    for name in ("CHANNEL_API_URL", "CHANNEL_APP_KEY", "CHANNEL_APP_SECRET"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def cli():
    """Shared CliRunner for all CLI tests."""
    return CliRunner()
