import os
import socket
import subprocess
import sys
import time
from pathlib import Path

import httpx
import pytest

from mockharness.api.client import MockApiClient
from mockharness.config.settings import Settings, get_settings
from mockharness.transport.tcp import HttpProbe, TcpEndpoint

REPO_ROOT = Path(__file__).resolve().parents[1]

def _free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]

def _wait_for_http_ready(url: str, proc: subprocess.Popen, log_path: Path, timeout_s: float = 15.0) -> None:
    """
    Wait for the mock server to respond at url. If the process exits, surface its log.
    """
    deadline = time.time() + timeout_s

    while time.time() < deadline:
        if proc.poll() is not None:
            raise RuntimeError(
                f"Mock server exited early (code={proc.returncode}).\n"
                f"--- server output ---\n{log_path.read_text()}"
            )
        try:
            r = httpx.get(url, timeout=1.0)
            if r.status_code == 200:
                return
        except httpx.HTTPError:
            pass
        time.sleep(0.2)

    raise RuntimeError(
        f"Mock server did not become ready at {url} within {timeout_s}s.\n"
        f"--- server output ---\n{log_path.read_text()}"
    )

@pytest.fixture(scope="session")
def mock_server(tmp_path_factory):
    """
    Starts the mock server once for the smoke/system tests, on a free port.
    Runs `python -m services.mock_api.app.main` from repo root so `services.*` imports resolve.
    """
    # host comes from the harness settings; the port is always a fresh one
    host = get_settings().mock_host
    port = _free_port(host)
    base_url = f"http://{host}:{port}"

    env = os.environ.copy()
    env["MOCK_HTTP_HOST"] = host
    env["MOCK_HTTP_PORT"] = str(port)
    env["MOCK_LOG_LEVEL"] = "debug"
    # hung connections from timeout tests shouldn't stall teardown
    env["MOCK_SHUTDOWN_GRACE_S"] = "1"

    log_path = tmp_path_factory.mktemp("mock_server") / "server.log"
    cmd = [sys.executable, "-m", "services.mock_api.app.main"]

    with open(log_path, "w") as log_file:
        p = subprocess.Popen(
            cmd,
            cwd=str(REPO_ROOT),
            env=env,
            stdout=log_file,
            stderr=subprocess.STDOUT,
        )

    try:
        _wait_for_http_ready(f"{base_url}/health", p, log_path)
        yield Settings(mock_http=base_url, mock_host=host, mock_port=port)
    finally:
        # Graceful terminate, then force kill if needed
        p.terminate()
        try:
            p.wait(timeout=5)
        except subprocess.TimeoutExpired:
            p.kill()

@pytest.fixture
def settings(mock_server):
    return mock_server

@pytest.fixture
def mock_api(settings):
    """
    Client for the running server. Every test starts from the default configuration.
    """
    client = MockApiClient(settings.mock_http)
    client.reset_config()
    try:
        yield client
    finally:
        client.reset_config()
        client.close()

@pytest.fixture
def mock_probe(settings):
    return HttpProbe(TcpEndpoint(settings.mock_host, settings.mock_port), timeout_s=1.5)
