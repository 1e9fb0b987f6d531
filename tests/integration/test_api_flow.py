"""HTTP round trips through the full FastAPI app on an in-memory database."""

from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.main import app
from src.pt_common.database import get_db_session
from src.pt_common.enums import UserRole
from src.pt_gateway.auth.jwt_handler import create_access_token

MakeUser = Callable[..., Awaitable[str]]


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], db: AsyncSession
) -> AsyncIterator[httpx.AsyncClient]:
    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test/api/v1") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def admin_headers(make_user: MakeUser) -> dict[str, str]:
    admin_id = await make_user("backoffice", role=UserRole.ADMIN)
    return {"Authorization": f"Bearer {create_access_token(admin_id)}"}


async def _register_and_login(client: httpx.AsyncClient, username: str) -> dict[str, str]:
    resp = await client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": "Secret123"},
    )
    assert resp.status_code == 201, resp.text
    assert len(resp.json()["data"]["referral_code"]) == 8

    resp = await client.post("/auth/login", json={"username": username, "password": "Secret123"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


async def test_wallet_lifecycle(client: httpx.AsyncClient, admin_headers: dict[str, str]) -> None:
    user = await _register_and_login(client, "alice")

    resp = await client.post(
        "/wallet/deposit",
        json={"amount_cents": 100_000, "method": "bank", "reference": "UTR-1"},
        headers=user,
    )
    assert resp.status_code == 202
    deposit_id = resp.json()["data"]["transaction_id"]

    resp = await client.post(f"/admin/deposit/{deposit_id}/approve", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["wallet_balance_cents"] == 100_000

    resp = await client.post("/accounts", json={"account_type": "LIVE", "leverage": 100}, headers=user)
    assert resp.status_code == 201
    account_id = resp.json()["data"]["account_id"]

    resp = await client.post(
        "/transfer",
        json={"account_id": account_id, "amount_cents": 40_000, "direction": "deposit"},
        headers=user,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["new_wallet_balance_cents"] == 60_000

    resp = await client.post(
        "/wallet/withdraw",
        json={"amount_cents": 50_000, "payout": {"method": "upi", "upi_id": "alice@okaxis"}},
        headers=user,
    )
    assert resp.status_code == 202

    wallet = (await client.get("/wallet", headers=user)).json()["data"]
    assert wallet["balance_cents"] == 10_000
    assert wallet["pending_withdrawal_cents"] == 50_000

    history = (await client.get("/wallet/transactions?limit=10", headers=user)).json()["data"]
    assert [item["tx_type"] for item in history["items"]] == ["WITHDRAWAL", "TRANSFER", "DEPOSIT"]

    health = (await client.get("/admin/invariants", headers=admin_headers)).json()["data"]
    assert health["ok"] is True
    assert health["conservation"]["total_assets_cents"] == 100_000


async def test_business_errors_use_envelope(client: httpx.AsyncClient) -> None:
    user = await _register_and_login(client, "bob")
    account_id = (
        await client.post("/accounts", json={"account_type": "LIVE", "leverage": 100}, headers=user)
    ).json()["data"]["account_id"]

    resp = await client.post(
        "/transfer",
        json={"account_id": account_id, "amount_cents": 1, "direction": "deposit"},
        headers=user,
    )

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == 2001
    assert body["data"] is None
    assert body["request_id"].startswith("req_")


async def test_invalid_leverage_rejected(client: httpx.AsyncClient) -> None:
    user = await _register_and_login(client, "carol")
    resp = await client.post("/accounts", json={"account_type": "LIVE", "leverage": 77}, headers=user)
    assert resp.status_code == 422
    assert resp.json()["code"] == 2007


async def test_unknown_referral_code(client: httpx.AsyncClient) -> None:
    resp = await client.post(
        "/auth/register",
        json={
            "username": "dave",
            "email": "dave@example.com",
            "password": "Secret123",
            "referral_code": "NOPE1234",
        },
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == 1006


async def test_auth_guards(client: httpx.AsyncClient) -> None:
    assert (await client.get("/wallet")).status_code == 401
    user = await _register_and_login(client, "erin")
    resp = await client.get("/admin/invariants", headers=user)
    assert resp.status_code == 403
    assert resp.json()["code"] == 1007
    resp = await client.post(
        "/events/trade-close",
        json={"account_id": "x", "trade_id": "T", "symbol": "EURUSD", "lots_x100": 1, "pnl_cents": 1},
        headers=user,
    )
    assert resp.status_code == 403


async def test_templates_are_public(client: httpx.AsyncClient, admin_headers: dict[str, str]) -> None:
    resp = await client.post(
        "/admin/challenge/templates",
        json={
            "name": "$25,000 One-Step",
            "fund_size_cents": 2_500_000,
            "fee_cents": 19_900,
            "steps_count": 1,
            "max_daily_drawdown_bps": 400,
            "max_overall_drawdown_bps": 800,
            "profit_target_bps": [1_000],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201

    templates = (await client.get("/challenge/templates")).json()["data"]
    assert [t["name"] for t in templates] == ["$25,000 One-Step"]
