import pytest
from httpx import AsyncClient, ASGITransport
from growth_academy.database import MemoryDatabase
from growth_academy.errors import AuthError
from growth_academy.main import app
from growth_academy.models import Identity
from growth_academy.services.attempts import AttemptRecorder
from growth_academy.services.context_registry import ContextRegistry
from growth_academy.services.identity import (
    INVALID_CREDENTIALS_MESSAGE, RATE_LIMITED_MESSAGE, username_to_email
)
from growth_academy.services.session_guard import LocalTokenHolder, SessionGuard
from growth_academy.utils.auth_utils import get_context_registry


class FakeIdentityProvider:
    """Stands in for Supabase Auth; accounts are shared between contexts"""

    def __init__(self, accounts: dict, rate_limited: set = None):
        self.accounts = accounts
        self.rate_limited = rate_limited if rate_limited is not None else set()
        self.current = None
        self.sign_out_calls = 0
        self.fail_sign_out = False
        self.reset_requests = []
        self._listeners = []

    def sign_in(self, username, password):
        email = username_to_email(username)
        if email in self.rate_limited:
            raise AuthError(RATE_LIMITED_MESSAGE, rate_limited=True)
        account = self.accounts.get(email)
        if not account or account["password"] != password:
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)
        self.current = Identity(id=account["id"], email=email)
        return self.current

    def sign_out(self):
        self.sign_out_calls += 1
        if self.fail_sign_out:
            raise ConnectionError("auth server unreachable")
        self.current = None
        for listener in list(self._listeners):
            listener(None)

    def on_identity_change(self, callback):
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def send_password_reset(self, identifier):
        self.reset_requests.append(username_to_email(identifier))


@pytest.fixture
def accounts():
    return {
        "riya@growth.academy": {"id": "student-riya", "password": "riya-pass"},
        "admin@growth.academy": {"id": "O7hofZGIF2NyWHXp6HXN7OXBEXI3", "password": "admin-pass"},
    }

@pytest.fixture
def store():
    return MemoryDatabase()

@pytest.fixture
def identity_factory(accounts):
    return lambda: FakeIdentityProvider(accounts)

@pytest.fixture
def rate_limited_factory(accounts):
    """Identity providers that refuse the given emails as rate limited"""
    return lambda emails: (lambda: FakeIdentityProvider(accounts, rate_limited=set(emails)))

@pytest.fixture
def make_guard(store, accounts):
    """Build guards that share one store, as separate browser tabs would"""
    guards = []

    def _make_guard(use_push=True, token=None):
        guard = SessionGuard(
            store, FakeIdentityProvider(accounts), LocalTokenHolder(token),
            poll_interval=3600, use_push=use_push,
        )
        guards.append(guard)
        return guard

    yield _make_guard
    for guard in guards:
        guard.close()

@pytest.fixture
def recorder(store):
    return AttemptRecorder(store, max_retries=2, backoff=0)

@pytest.fixture
def quiz_data():
    """Two questions, one minute, correct answers [1, 3]"""
    return {
        "id": "quiz-physics-1",
        "classId": "class-10",
        "subjectId": "physics",
        "title": "Motion Basics",
        "description": "Speed, velocity and acceleration",
        "priceInr": 1245,
        "timeLimit": 1,
        "questions": [
            {
                "id": "q1",
                "question": "SI unit of speed?",
                "options": ["km/h", "m/s", "m/s^2", "N"],
                "correctAnswer": 1,
            },
            {
                "id": "q2",
                "question": "Acceleration is the rate of change of?",
                "options": ["Distance", "Displacement", "Speed", "Velocity"],
                "correctAnswer": 3,
            },
        ],
    }

@pytest.fixture
def seeded_store(store, quiz_data):
    store.upsert("quizzes", quiz_data["id"], quiz_data)
    store.upsert("studentUsers", "su-1", {"username": "riya", "email": "riya@growth.academy", "classId": "class-10"})
    return store

@pytest.fixture
def registry(seeded_store, identity_factory):
    registry = ContextRegistry(seeded_store, identity_factory, poll_interval=3600)
    registry.recorder = AttemptRecorder(seeded_store, max_retries=1, backoff=0)
    yield registry
    registry.close_all()

@pytest.fixture
async def client(registry):
    """Create test client"""
    app.dependency_overrides[get_context_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    # guards and quiz timers belong to this test's event loop
    registry.close_all()
    app.dependency_overrides.clear()

@pytest.fixture
def context_headers():
    """Helper to create context headers"""
    def _context_headers(context_id: str):
        return {"X-Context-Id": context_id}
    return _context_headers

@pytest.fixture
def sign_in(client, context_headers):
    async def _sign_in(username="riya", password="riya-pass", context_id=None):
        headers = context_headers(context_id) if context_id else {}
        response = await client.post("/auth/signin", json={"username": username, "password": password}, headers=headers)
        assert response.status_code == 200, response.text
        return response.json()
    return _sign_in
