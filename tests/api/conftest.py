from typing import Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor, User
from medicare.main import app
from medicare.rate_limit import limiter
from medicare.repositories import Store
from medicare.security import create_access_token


@pytest.fixture
def bearer() -> Callable[[Actor], dict[str, str]]:
    """Build the Authorization header for an actor."""

    def build(actor: Actor) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(actor.id, actor.role)}"}

    return build


@pytest_asyncio.fixture
async def client(store: Store):
    app.dependency_overrides[get_store] = lambda: store
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest_asyncio.fixture
async def admin_user(store: Store) -> User:
    return await store.users.insert(User(name="Root", email="root@medicare.test", role=Role.ADMIN))


@pytest.fixture
def admin(admin_user: User) -> Actor:
    return Actor(id=admin_user.id, role=Role.ADMIN)
