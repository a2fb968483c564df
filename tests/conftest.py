"""
Shared pytest fixtures for the Relocation Concierge test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - fake_storage: in-memory stand-in for the object store HTTP session
    - make_client / make_template / make_item / auth_headers: data + token helpers
"""

import pytest
import requests

from concierge import create_app
from concierge.integrations import storage_gateway as gw_module
from concierge.integrations.storage_gateway import StorageGateway
from concierge.models import db as _db
from concierge.models.checklist import ChecklistItem, ChecklistTemplate
from concierge.models.client import Client, ClientAuthorization
from concierge.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Object storage fake ──────────────────────────────────────────────────


class FakeResponse:
    """Just enough of requests.Response for StorageGateway."""

    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or ("" if payload is None else str(payload))
        self.content = b"" if payload is None else b"{}"

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeStorageSession:
    """Records calls; answers from a per-method queue, else a success default.

    Queue entries may be FakeResponse instances or exceptions to raise.
    """

    def __init__(self):
        self.calls = []
        self.queued = {"POST": [], "DELETE": []}

    def queue(self, method, *responses):
        self.queued[method].extend(responses)

    def fail(self, method, status_code, text="error"):
        self.queue(method, FakeResponse(status_code, text=text))

    def respond(self, method, payload, status_code=200):
        self.queue(method, FakeResponse(status_code, payload))

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.queued.get(method):
            nxt = self.queued[method].pop(0)
            if isinstance(nxt, Exception):
                raise nxt
            return nxt
        if "/object/sign/" in url:
            return FakeResponse(200, {"signedURL": "/object/sign/uploads/x?token=abc"})
        if method == "POST":
            return FakeResponse(200, {"Key": url.rsplit("/object/", 1)[-1]})
        return FakeResponse(200, [{"name": "deleted"}])

    def calls_for(self, method):
        return [c for c in self.calls if c["method"] == method]


@pytest.fixture()
def fake_storage(monkeypatch):
    """Swap the module-level storage gateway for one backed by FakeStorageSession."""
    fake = FakeStorageSession()
    monkeypatch.setattr(gw_module, "storage_gateway", StorageGateway(session=fake, backoff_seconds=[]))
    return fake


@pytest.fixture()
def network_error():
    return requests.ConnectionError("connection refused")


# ── Data helpers ─────────────────────────────────────────────────────────


@pytest.fixture()
def make_client():
    def _make(name="Kim Family", *, user_id=None, owner_agent_id=None, delegate_user_id=None):
        c = Client(name=name, user_id=user_id, owner_agent_id=owner_agent_id)
        _db.session.add(c)
        _db.session.flush()
        if delegate_user_id:
            _db.session.add(ClientAuthorization(client_id=c.id, authorized_user_id=delegate_user_id))
        _db.session.commit()
        return c
    return _make


@pytest.fixture()
def make_template():
    def _make(title="Task", category="pre_departure", order_num=1, **kwargs):
        t = ChecklistTemplate(title=title, category=category, order_num=order_num, **kwargs)
        _db.session.add(t)
        _db.session.commit()
        return t
    return _make


@pytest.fixture()
def make_item():
    def _make(client_id, template_id, **kwargs):
        item = ChecklistItem(client_id=client_id, template_id=template_id, **kwargs)
        _db.session.add(item)
        _db.session.commit()
        return item
    return _make


@pytest.fixture()
def auth_headers():
    """Bearer header for a user id and role list."""
    def _headers(user_id, roles=("client",)):
        token = generate_access_token(user_id, list(roles))
        return {"Authorization": f"Bearer {token}"}
    return _headers
