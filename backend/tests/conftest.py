"""
Pytest configuration and shared fixtures for the storefront tests.

Provides an in-memory SQLite DB, a scripted Hyp APISign endpoint behind
httpx.MockTransport, an in-memory mailer, and an ASGI test client with
those wired in through dependency overrides.
"""
import copy
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import Settings, get_settings
from database import Base, get_db
from exceptions import MailError
from services.hyp_client import HypClient, HypCredentials
from services.mail_service import Mailer, MailMessage
from services.notification_service import NotificationDispatcher
from services.order_store import OrderDraft, OrderStore
from services.checkout_service import CheckoutService, KeyedLocks

# ── Test Data ────────────────────────────────────────────────────────

VALID_CUSTOMER = {
    "fullname": "Dana Levi",
    "phone": "050-1234567",
    "city": "Tel Aviv",
    "street": "Dizengoff",
    "houseNumber": "99",
    "email": "dana@example.com",
    "zip": "6433222",
    "notes": "",
}

STANDARD_CART = [{"title": "Canvas A", "category": "standard", "size": "80×25", "quantity": 2}]

STANDARD_TOTALS = {
    "standardQty": 2, "pairQty": 0, "tripleQty": 0,
    "standardSubtotal": 400, "pairSubtotal": 0, "tripleSubtotal": 0, "otherSubtotal": 0,
    "subtotal": 400, "shipping": 0, "total": 400,
}


def checkout_payload(**overrides) -> dict:
    payload = {
        "customerDetails": copy.deepcopy(VALID_CUSTOMER),
        "cart": copy.deepcopy(STANDARD_CART),
        "source": "site",
        "section": "canvas",
    }
    payload.update(overrides)
    return payload


def make_draft(gateway_order_id: str = "ORD-1700000000000-ABCD1234", **overrides) -> OrderDraft:
    fields = {
        "gateway_order_id": gateway_order_id,
        "customer_details": copy.deepcopy(VALID_CUSTOMER),
        "cart": copy.deepcopy(STANDARD_CART),
        "totals": dict(STANDARD_TOTALS),
        "source": "site",
        "section": "canvas",
    }
    fields.update(overrides)
    return OrderDraft(**fields)


# ── Fakes ────────────────────────────────────────────────────────────


class FakeHyp:
    """
    Scripted Hyp APISign endpoint.

    SIGN answers with a signed query string; VERIFY echoes the callback's
    CCode unless ``verify_ccode`` is set.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.verify_ccode: Optional[str] = None
        self.sign_body: Optional[str] = None
        self.verify_body: Optional[str] = None
        self.status_code = 200
        self.fail_with: Optional[Exception] = None

    def _calls(self, what: str) -> list[httpx.QueryParams]:
        return [r.url.params for r in self.requests if r.url.params.get("What") == what]

    @property
    def sign_calls(self) -> list[httpx.QueryParams]:
        return self._calls("SIGN")

    @property
    def verify_calls(self) -> list[httpx.QueryParams]:
        return self._calls("VERIFY")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="Service Unavailable")

        params = request.url.params
        if params.get("What") == "SIGN":
            body = self.sign_body
            if body is None:
                body = (
                    f"Masof={params.get('Masof')}&Order={params.get('Order')}"
                    f"&Amount={params.get('Amount')}&Coin={params.get('Coin')}"
                    f"&signature=5f1b2c3d4e"
                )
            return httpx.Response(200, text=body)

        body = self.verify_body
        if body is None:
            ccode = self.verify_ccode if self.verify_ccode is not None else params.get("CCode", "")
            body = f"CCode={ccode}&Order={params.get('Order', '')}&Id={params.get('Id', '')}"
        return httpx.Response(200, text=body)


class FakeMailer(Mailer):
    """Records messages instead of sending them."""

    def __init__(self):
        self.sent: list[MailMessage] = []
        self.senders: list[str] = []
        self.fail_for: set[str] = set()

    async def send(self, message: MailMessage, sender: str) -> None:
        if message.to in self.fail_for:
            raise MailError(f"Mailbox unavailable: {message.to}")
        self.sent.append(message)
        self.senders.append(sender)

    def sent_to(self, address: str) -> list[MailMessage]:
        return [m for m in self.sent if m.to == address]


# ── Settings / Fakes Fixtures ────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        app_base_url="https://studio.test",
        hyp_base_url="https://pay.hyp.test/p/",
        hyp_masof="0010131918",
        hyp_passp="test-passp",
        hyp_key="test-signing-key",
        admin_email="admin@studio.test",
        smtp_from="shop@studio.test",
        dev_secret="dev-secret",
        admin_api_key="admin-key",
        cors_origins="http://localhost:5173",
    )


@pytest.fixture
def fake_hyp() -> FakeHyp:
    return FakeHyp()


@pytest.fixture
def hyp_client(test_settings: Settings, fake_hyp: FakeHyp) -> HypClient:
    return HypClient(
        test_settings.hyp_credentials(),
        timeout=test_settings.hyp_timeout_seconds,
        transport=httpx.MockTransport(fake_hyp.handler),
    )


@pytest.fixture
def unconfigured_hyp_client(fake_hyp: FakeHyp) -> HypClient:
    return HypClient(
        HypCredentials(base_url="https://pay.hyp.test/p/", masof="", passp="", key=""),
        transport=httpx.MockTransport(fake_hyp.handler),
    )


@pytest.fixture
def fake_mailer() -> FakeMailer:
    return FakeMailer()


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


# ── Service Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def order_store(db_session: AsyncSession) -> OrderStore:
    return OrderStore(db_session)


@pytest.fixture
def dispatcher(order_store: OrderStore, fake_mailer: FakeMailer, test_settings: Settings) -> NotificationDispatcher:
    return NotificationDispatcher(order_store, fake_mailer, test_settings)


@pytest.fixture
def checkout_service(
    order_store: OrderStore,
    hyp_client: HypClient,
    dispatcher: NotificationDispatcher,
    test_settings: Settings,
) -> CheckoutService:
    return CheckoutService(order_store, hyp_client, dispatcher, test_settings, locks=KeyedLocks())


# ── HTTP Client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    test_settings: Settings,
    hyp_client: HypClient,
    fake_mailer: FakeMailer,
) -> AsyncGenerator[AsyncClient, None]:
    """
    ASGI client against the real app.

    DB, settings, gateway client and mailer are replaced via
    dependency_overrides; rate limit counters are reset around each test.
    """
    from main import app
    from deps import get_hyp_client, get_mailer
    from middleware.rate_limit import get_limiter

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_hyp_client] = lambda: hyp_client
    app.dependency_overrides[get_mailer] = lambda: fake_mailer
    get_limiter().reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    get_limiter().reset()
