import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from app.config import Settings
from app.core.db import build_tortoise_config
from app.core.errors import UpstreamError
from app.core.security import hash_password
from app.main import create_app
from app.models.user import User
from app.services.chat_service import ChatService
from app.services.llm_base import LLMProvider
from app.services.user_service import UserService


TEST_DB_URL = "sqlite://:memory:"


class FakeProvider(LLMProvider):
    """
    Scripted LLM provider.

    generate() returns `reply`; iter_reply() yields `chunks`, raising `error`
    once `fail_after` chunks have been produced (when fail_after is set).
    Every call records the turns it received in `calls`.
    """

    def __init__(self):
        self.reply = "June is great for Lisbon or the Norwegian fjords."
        self.chunks = ["June is great ", "for Lisbon ", "or the Norwegian fjords."]
        self.fail_after = None
        self.error = None
        self.calls = []

    @property
    def name(self) -> str:
        return "Fake"

    def is_available(self) -> bool:
        return True

    async def generate(self, turns):
        self.calls.append(list(turns))
        if self.error is not None:
            raise self.error
        return self.reply

    async def iter_reply(self, turns):
        self.calls.append(list(turns))
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise self.error or UpstreamError("provider aborted")
            yield chunk


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=build_tortoise_config(TEST_DB_URL))
    await Tortoise.generate_schemas()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=TEST_DB_URL, jwt_secret="test-secret", jwt_expire_minutes=30)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def db():
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client(db, settings, provider):
    """
    Provide an HTTPX AsyncClient bound to a fresh app (fake LLM provider, fresh DB).
    """
    app = create_app(settings, provider=provider)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def chat_service(db, provider) -> ChatService:
    return ChatService(provider, history_limit=20)


@pytest_asyncio.fixture
async def user_service(db, settings) -> UserService:
    return UserService(settings)


@pytest_asyncio.fixture
async def create_user(db):
    """
    Factory fixture to create users directly via ORM.
    """

    async def _create_user(password: str = "UserPass!23", nickname: str = "Tester") -> tuple[User, str]:
        user = await User.create(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            password_hash=hash_password(password),
            nickname=nickname,
        )
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def register(client):
    """
    Helper fixture: register a fresh account through the API and return
    (Authorization headers, token, user dict).
    """

    async def _register(email: str | None = None, password: str = "pw123456", nickname: str = "Tester"):
        email = email or f"user_{uuid.uuid4().hex[:8]}@example.com"
        resp = await client.post(
            "/api/v1/user/register",
            json={"email": email, "password": password, "nickname": nickname},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return {"Authorization": f"Bearer {data['token']}"}, data["token"], data["user"]

    return _register
