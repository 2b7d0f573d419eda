import pytest
from fastapi.testclient import TestClient

from services.mock_api.app.core.responder import MockResponder
from services.mock_api.app.core.state import ConfigStore
from services.mock_api.app.main import create_app

@pytest.fixture
def store():
    return ConfigStore()

@pytest.fixture
def responder(store):
    return MockResponder(store)

@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as c:
        yield c
