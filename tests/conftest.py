"""
Test configuration and fixtures for pytest.

Fixtures provide tmp_path-backed settings, a fake process runner standing in
for caddy/systemctl, a fake Caddy admin API (httpx.MockTransport) and sample
project records.
"""

import sys
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx
import pytest

# Add the repository root to sys.path
repo_dir = Path(__file__).parent.parent
sys.path.insert(0, str(repo_dir))


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any app imports
    os.environ["DATA_DIR"] = "/tmp/proxyplane-test/data"
    os.environ["APPS_DIR"] = "/tmp/proxyplane-test/apps"
    os.environ["UI_DIST_DIR"] = "/tmp/proxyplane-test/ui/dist"
    os.environ["PORT"] = "3000"
    os.environ["CADDY_USE_SUDO"] = "false"
    os.environ["LOG_LEVEL"] = "DEBUG"

    # Import and clear settings cache after env vars are set
    from proxyplane.config import get_settings
    get_settings.cache_clear()

    # Register custom markers
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


class FakeRunner:
    """
    Stands in for run_async. Commands are keyed by what they do:
    "validate", "reload", "version" (caddy subcommands) and "systemctl".
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []
        self.outcomes: Dict[str, Union[tuple, BaseException]] = {}

    def set(self, key: str, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.outcomes[key] = (returncode, stdout, stderr)

    def fail_with(self, key: str, error: BaseException):
        self.outcomes[key] = error

    @staticmethod
    def key_for(cmd: List[str]) -> str:
        args = cmd[1:] if cmd and cmd[0] == "sudo" else cmd
        if args[0] == "systemctl":
            return "systemctl"
        return args[1]

    def calls_for(self, key: str) -> List[List[str]]:
        return [cmd for cmd in self.calls if self.key_for(cmd) == key]

    async def __call__(self, cmd, timeout=None, cwd=None, env=None, check=False):
        from proxyplane.utils.async_subprocess import SubprocessResult

        self.calls.append(list(cmd))
        self.timeouts.append(timeout)
        outcome = self.outcomes.get(self.key_for(cmd), (0, "", ""))
        if isinstance(outcome, BaseException):
            raise outcome
        returncode, stdout, stderr = outcome
        return SubprocessResult(returncode=returncode, stdout=stdout, stderr=stderr, args=list(cmd))


class FakeAdminApi:
    """Caddy admin endpoint: POST /load and GET /config/."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.load_status = 200
        self.config_status = 200
        self.reachable = True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.method == "POST" and request.url.path == "/load":
            return httpx.Response(self.load_status, text="" if self.load_status == 200 else "loading config: boom")
        if request.method == "GET" and request.url.path == "/config/":
            return httpx.Response(self.config_status, json={})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def loads(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/load"]


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory."""
    from proxyplane.config import Settings

    return Settings(
        data_dir=str(tmp_path / "data"),
        apps_dir=str(tmp_path / "apps"),
        ui_dist_dir=str(tmp_path / "ui" / "dist"),
        caddy_use_sudo=False,
        caddy_admin_url="http://localhost:2019",
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def admin_api():
    return FakeAdminApi()


@pytest.fixture
def manager(settings, fake_runner, admin_api):
    """CaddyConfigManager wired to the fakes."""
    from proxyplane.services.caddy import CaddyConfigManager

    return CaddyConfigManager(settings, runner=fake_runner, transport=admin_api.transport)


@pytest.fixture
def react_project():
    from proxyplane.schemas import ProjectConfig, ProjectType

    return ProjectConfig(id="proj-react", name="My App_v2", type=ProjectType.REACT, port=4001)


@pytest.fixture
def next_project():
    from proxyplane.schemas import ProjectConfig, ProjectType

    return ProjectConfig(
        id="proj-next",
        name="Storefront",
        type=ProjectType.NEXT,
        port=4002,
        domains=["shop.example.com", "www.shop.example.com"],
    )
