from datetime import timedelta

from app import create_app
from conftest import location_path, session_cookie
from sessions import MemorySessionStore


def sid_from(cookie):
    return cookie.rsplit(".", 1)[0]


def test_anonymous_visit_sets_no_cookie(client, app):
    resp = client.get("/")
    assert resp.status_code == 200
    assert session_cookie(resp) is None
    assert len(app.session_interface.store) == 0


def test_login_stores_record_server_side(client, app, users):
    alice = users.create("alice")
    resp = client.post("/login", data={"username": "alice"})
    cookie = session_cookie(resp)
    assert cookie and "." in cookie

    record = app.session_interface.store.get(sid_from(cookie))
    assert record["logged_in"] is True
    assert record["user_id"] == alice.id
    # la cookie solo lleva el token firmado
    assert "alice" not in cookie


def test_cookie_replay_identifies_session(client, app, users):
    users.create("alice")
    cookie = session_cookie(client.post("/login", data={"username": "alice"}))

    other = app.test_client(use_cookies=False)
    resp = other.get("/profile", headers={"Cookie": f"session={cookie}"})
    assert resp.status_code == 200
    assert b"alice" in resp.data


def test_logout_destroys_server_record(client, app, users):
    users.create("alice")
    cookie = session_cookie(client.post("/login", data={"username": "alice"}))
    assert sid_from(cookie) in app.session_interface.store

    resp = client.get("/logout")
    assert location_path(resp) == "/"
    assert session_cookie(resp) == ""
    assert sid_from(cookie) not in app.session_interface.store

    # la cookie antigua ya no abre sesión
    other = app.test_client(use_cookies=False)
    resp = other.get("/profile", headers={"Cookie": f"session={cookie}"})
    assert resp.status_code == 302
    assert location_path(resp) == "/login"


def test_tampered_cookie_is_anonymous(client, app, users):
    users.create("alice")
    cookie = session_cookie(client.post("/login", data={"username": "alice"}))
    sid, signature = cookie.rsplit(".", 1)
    forged = f"{sid}x.{signature}"

    other = app.test_client(use_cookies=False)
    resp = other.get("/profile", headers={"Cookie": f"session={forged}"})
    assert location_path(resp) == "/login"


def test_cookie_signed_with_other_secret_is_rejected(client, users, posts):
    users.create("alice")
    cookie = session_cookie(client.post("/login", data={"username": "alice"}))

    other_app = create_app(
        {"TESTING": True, "SECRET_KEY": "another-secret", "WTF_CSRF_ENABLED": False, "SEED_SAMPLE_DATA": False},
        users=users,
        posts=posts,
    )
    other = other_app.test_client(use_cookies=False)
    resp = other.get("/profile", headers={"Cookie": f"session={cookie}"})
    assert location_path(resp) == "/login"


def test_secure_cookie_flag(users, posts):
    users.create("alice")
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "s",
            "WTF_CSRF_ENABLED": False,
            "SEED_SAMPLE_DATA": False,
            "SESSION_COOKIE_SECURE": True,
        },
        users=users,
        posts=posts,
    )
    resp = app.test_client().post("/login", data={"username": "alice"})
    header = [h for h in resp.headers.getlist("Set-Cookie") if h.startswith("session=")][0]
    assert "Secure" in header
    assert "HttpOnly" in header


def test_random_secret_when_none_configured(users, posts):
    app = create_app({"SECRET_KEY": None, "SEED_SAMPLE_DATA": False}, users=users, posts=posts)
    assert app.secret_key


def test_anonymous_visits_with_posts_leave_no_records(app, users, posts):
    posts.create("Hi", "hello", users.create("alice"))
    for _ in range(50):
        resp = app.test_client().get("/")
        assert resp.status_code == 200
        assert b"Hi" in resp.data
        assert session_cookie(resp) is None
    assert len(app.session_interface.store) == 0


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_store_expires_idle_records():
    clock = FakeClock()
    store = MemorySessionStore(lifetime=timedelta(seconds=60), clock=clock)
    store.save("a", {"user_id": 1})
    clock.now += 30
    assert store.get("a") == {"user_id": 1}
    # leer renueva el registro
    clock.now += 45
    assert store.get("a") == {"user_id": 1}
    clock.now += 61
    assert store.get("a") is None
    assert "a" not in store


def test_store_save_prunes_expired_records():
    clock = FakeClock()
    store = MemorySessionStore(lifetime=timedelta(seconds=60), clock=clock)
    store.save("old", {"x": 1})
    clock.now += 120
    store.save("new", {"x": 2})
    assert "old" not in store
    assert len(store) == 1


def test_store_without_lifetime_keeps_records():
    clock = FakeClock()
    store = MemorySessionStore(clock=clock)
    store.save("a", {"x": 1})
    clock.now += 10 ** 9
    assert store.get("a") == {"x": 1}


def test_app_store_uses_permanent_session_lifetime(users, posts):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "s",
            "SEED_SAMPLE_DATA": False,
            "PERMANENT_SESSION_LIFETIME": timedelta(minutes=5),
        },
        users=users,
        posts=posts,
    )
    assert app.session_interface.store.lifetime == timedelta(minutes=5)
