from urllib.parse import parse_qs, urlparse

import pytest

from app import create_app
from auth import AuthGate
from models import PostStore, UserStore


@pytest.fixture
def users():
    return UserStore()


@pytest.fixture
def posts():
    return PostStore()


@pytest.fixture
def gate(users):
    return AuthGate(users)


@pytest.fixture
def app(users, posts):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "WTF_CSRF_ENABLED": False,
            "SEED_SAMPLE_DATA": False,
        },
        users=users,
        posts=posts,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_as(client, users):
    def _login(username):
        if users.find_by_username(username) is None:
            users.create(username)
        resp = client.post("/login", data={"username": username})
        assert resp.status_code == 302
        return users.find_by_username(username)
    return _login


def location_path(resp):
    return urlparse(resp.headers["Location"]).path


def location_query(resp):
    return parse_qs(urlparse(resp.headers["Location"]).query)


def session_cookie(resp, name="session"):
    for header in resp.headers.getlist("Set-Cookie"):
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    return None
