import pytest

from app import create_app
from config import TestConfig
from storage import get_storage


class DatabaseTestConfig(TestConfig):
    DATABASE_URL = "sqlite://"


@pytest.fixture
def app():
    return create_app(TestConfig)


@pytest.fixture
def client(app):
    return app.test_client()


BACKENDS = {"memory": TestConfig, "database": DatabaseTestConfig}


@pytest.fixture(params=sorted(BACKENDS))
def storage(request):
    """Each backend in turn, freshly seeded."""
    app = create_app(BACKENDS[request.param])
    with app.app_context():
        yield get_storage()


@pytest.fixture(params=sorted(BACKENDS))
def backend_client(request):
    return create_app(BACKENDS[request.param]).test_client()


@pytest.fixture
def login(client):
    """Return an Authorization header for one of the seeded accounts."""

    def _login(username, password, kind="user"):
        res = client.post(f"/api/{kind}/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.get_json()
        return {"Authorization": f"Bearer {res.get_json()['token']}"}

    return _login


@pytest.fixture
def admin_headers(login):
    return login("admin", "admin123", kind="admin")
