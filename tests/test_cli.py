"""CLI tests — click's CliRunner against a mocked API and a file database.

HTTP commands get an httpx MockTransport in place of the real API.
Admin account commands run against a throwaway SQLite file; the tests
are sync so each command can run its own event loop.
"""

import asyncio
import json

import httpx
import pytest
from click.testing import CliRunner
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from foodiii.cli import main as cli
from foodiii.db import engine as db_engine
from foodiii.db.models import Base
from foodiii.services.user_service import UserService


@pytest.fixture
def runner():
    return CliRunner()


# ═══════════════════════════════════════════════════════════
# HTTP commands
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def api(monkeypatch):
    """Route the CLI's HTTP client to an in-memory handler.

    Tests set api.routes[(method, path)] = (status, body); every request
    is recorded in api.requests.
    """

    class Api:
        routes: dict = {}
        requests: list = []

    def handler(request: httpx.Request) -> httpx.Response:
        Api.requests.append(request)
        status, body = Api.routes.get(
            (request.method, request.url.path), (404, {"detail": "Not Found"})
        )
        return httpx.Response(status, json=body)

    Api.routes = {}
    Api.requests = []
    monkeypatch.setattr(
        cli,
        "_client",
        lambda: httpx.AsyncClient(
            base_url="http://api.test",
            transport=httpx.MockTransport(handler),
            headers={"Authorization": "Bearer t0ken"},
        ),
    )
    return Api


def test_orders_lists_table(runner, api):
    api.routes[("GET", "/api/v1/admin/orders")] = (200, {
        "data": [{
            "id": "9c1d",
            "order_number": "ORD-20261019-A1B2C3",
            "status": "pending",
            "total_amount": 250.0,
            "email": "asha@foodiii.test",
        }],
        "total": 1,
        "total_pages": 1,
        "current_page": 1,
    })

    result = runner.invoke(cli.main, ["orders", "--status", "pending"])

    assert result.exit_code == 0, result.output
    assert "ORD-20261019-A1B2C3" in result.output
    assert "1 total" in result.output
    assert api.requests[0].url.params["status"] == "pending"


def test_orders_empty(runner, api):
    api.routes[("GET", "/api/v1/admin/orders")] = (
        200, {"data": [], "total": 0, "total_pages": 0, "current_page": 1},
    )
    result = runner.invoke(cli.main, ["orders"])
    assert result.exit_code == 0
    assert "No orders found." in result.output


def test_orders_unauthorized(runner, api):
    api.routes[("GET", "/api/v1/admin/orders")] = (401, {"detail": "Not authenticated"})
    result = runner.invoke(cli.main, ["orders"])
    assert result.exit_code == 1
    assert "FOODIII_TOKEN" in result.output


def test_set_status(runner, api):
    api.routes[("PUT", "/api/v1/admin/orders/9c1d/status")] = (200, {
        "id": "9c1d", "order_number": "ORD-20261019-A1B2C3", "status": "shipped",
    })

    result = runner.invoke(cli.main, ["set-status", "9c1d", "shipped"])

    assert result.exit_code == 0, result.output
    assert "ORD-20261019-A1B2C3" in result.output
    assert json.loads(api.requests[0].content) == {"status": "shipped"}


def test_set_status_invalid(runner, api):
    api.routes[("PUT", "/api/v1/admin/orders/9c1d/status")] = (
        400, {"detail": "Invalid status: lost"},
    )
    result = runner.invoke(cli.main, ["set-status", "9c1d", "lost"])
    assert result.exit_code == 1
    assert "Invalid status: lost" in result.output


def test_stats(runner, api):
    api.routes[("GET", "/api/v1/admin/orders/stats")] = (200, {
        "total_orders": 3,
        "total_revenue": 730.5,
        "statuses": [
            {"status": "pending", "count": 2, "amount": 480.5},
            {"status": "delivered", "count": 1, "amount": 250.0},
        ],
    })
    result = runner.invoke(cli.main, ["stats"])
    assert result.exit_code == 0, result.output
    assert "Orders: 3" in result.output
    assert "730.50" in result.output


def test_ws_url_follows_api_url(monkeypatch):
    monkeypatch.setenv("FOODIII_API_URL", "https://orders.example.com/")
    monkeypatch.setenv("FOODIII_TOKEN", "abc")
    assert cli._ws_url() == "wss://orders.example.com/ws/admin?token=abc"

    monkeypatch.delenv("FOODIII_TOKEN")
    monkeypatch.setenv("FOODIII_API_URL", "http://localhost:7000")
    assert cli._ws_url() == "ws://localhost:7000/ws/admin"


def test_gen_secret(runner):
    result = runner.invoke(cli.main, ["gen-secret", "--bytes", "16"])
    assert result.exit_code == 0
    assert len(result.output.strip()) == 32


# ═══════════════════════════════════════════════════════════
# Admin account commands
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def file_db(tmp_path, monkeypatch):
    """A SQLite file database wired in as the CLI's session factory.

    NullPool so no connection outlives the event loop that opened it.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool
    )

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(db_engine, "async_session_factory", factory)
    yield factory
    asyncio.run(engine.dispose())


def _user(factory, email):
    async def fetch():
        async with factory() as db:
            return await UserService(db).get_by_email(email)

    return asyncio.run(fetch())


def test_create_admin(runner, file_db):
    result = runner.invoke(
        cli.main,
        ["create-admin", "ops@foodiii.test", "--name", "Ops", "--password", "s3cret!"],
    )
    assert result.exit_code == 0, result.output
    assert "Created admin ops@foodiii.test" in result.output

    user = _user(file_db, "ops@foodiii.test")
    assert user.role == "admin"
    assert user.name == "Ops"


def test_create_admin_promotes_existing_user(runner, file_db):
    async def seed():
        async with file_db() as db:
            await UserService(db).create_user(
                name="Ravi", email="ravi@foodiii.test", password="ravi-pass"
            )

    asyncio.run(seed())

    result = runner.invoke(
        cli.main, ["create-admin", "ravi@foodiii.test", "--password", "ignored"]
    )
    assert result.exit_code == 0, result.output
    assert "Promoted" in result.output
    assert _user(file_db, "ravi@foodiii.test").role == "admin"


def test_create_admin_short_password(runner, file_db):
    result = runner.invoke(cli.main, ["create-admin", "x@foodiii.test", "--password", "123"])
    assert result.exit_code == 1
    assert _user(file_db, "x@foodiii.test") is None


def test_check_admin(runner, file_db):
    runner.invoke(cli.main, ["create-admin", "ops@foodiii.test", "--password", "s3cret!"])

    result = runner.invoke(cli.main, ["check-admin", "ops@foodiii.test"])
    assert result.exit_code == 0, result.output
    assert "role=admin" in result.output
    assert "active" in result.output


def test_check_admin_unknown(runner, file_db):
    result = runner.invoke(cli.main, ["check-admin", "ghost@foodiii.test"])
    assert result.exit_code == 1
    assert "No user with email" in result.output


def test_set_admin_password(runner, file_db):
    runner.invoke(cli.main, ["create-admin", "ops@foodiii.test", "--password", "s3cret!"])

    result = runner.invoke(
        cli.main, ["set-admin-password", "ops@foodiii.test", "--password", "n3w-pass"]
    )
    assert result.exit_code == 0, result.output

    async def login(password):
        async with file_db() as db:
            return await UserService(db).authenticate("ops@foodiii.test", password)

    assert asyncio.run(login("n3w-pass")) is not None
    assert asyncio.run(login("s3cret!")) is None


def test_set_admin_password_requires_admin(runner, file_db):
    result = runner.invoke(
        cli.main, ["set-admin-password", "nobody@foodiii.test", "--password", "n3w-pass"]
    )
    assert result.exit_code == 1
