# backend/tests/conftest.py
"""
Pytest configuration for the settlement backend.

Every test gets its own in-memory SQLite database. The FastAPI app is
exercised through ``TestClient`` with ``get_db`` and the gateway client
overridden, and the Chapa API is replaced by an ``httpx.MockTransport``.
"""

import os

# Set testing mode BEFORE any app imports!
os.environ["is_testing"] = "true"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.pop("CHAPA_WEBHOOK_SECRET", None)
os.environ.pop("WEBHOOK_SECRET", None)

from decimal import Decimal
import hashlib
import hmac
import json
from typing import Any, Callable, Dict, Optional, Union

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from coursepay.api.dependencies.database import get_db
from coursepay.api.dependencies.services import get_gateway_client
from coursepay.auth import create_access_token
from coursepay.constants.payment_status import PaymentStatus, UserRole
from coursepay.core.config import settings
from coursepay.core.ulid_helper import generate_ulid
from coursepay.database import Base, enable_sqlite_savepoints
from coursepay.integrations.chapa_client import ChapaClient
from coursepay.main import app
from coursepay.models import Course, Payment, User

TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_CHAPA_KEY = "CHASECK_TEST-xxxxxxxxxxxxxxxx"

# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    """Fresh session per test; nothing leaks between tests."""
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# CHAPA STUB
# ============================================================================

StubResponse = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class ChapaStub:
    """
    Routes Chapa API calls to canned responses.

    Each endpoint holds either an ``httpx.Response``, a callable producing
    one, or an exception to raise (e.g. ``httpx.ConnectTimeout``).
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.initialize: StubResponse = httpx.Response(
            200,
            json={
                "status": "success",
                "message": "Hosted Link",
                "data": {"checkout_url": "https://checkout.chapa.co/checkout/payment/abc"},
            },
        )
        self.verify_status = "success"
        self.verify: Optional[StubResponse] = None
        self.transfer: StubResponse = httpx.Response(
            200, json={"status": "success", "message": "Transfer Queued Successfully", "data": "ok"}
        )

    def _verify_default(self, request: httpx.Request) -> httpx.Response:
        reference = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            json={
                "status": "success",
                "message": "Payment details",
                "data": {"tx_ref": reference, "status": self.verify_status, "currency": "ETB"},
            },
        )

    def _resolve(self, response: Optional[StubResponse], request: httpx.Request) -> httpx.Response:
        if response is None:
            return self._verify_default(request)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/transaction/initialize"):
            return self._resolve(self.initialize, request)
        if "/transaction/verify/" in path:
            return self._resolve(self.verify, request)
        if path.endswith("/transfers"):
            return self._resolve(self.transfer, request)
        return httpx.Response(404, json={"message": "not found"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def client(self) -> ChapaClient:
        return ChapaClient(
            secret_key=TEST_CHAPA_KEY,
            base_url="https://api.chapa.test/v1",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def chapa_stub() -> ChapaStub:
    return ChapaStub()


@pytest.fixture
def gateway(chapa_stub: ChapaStub) -> ChapaClient:
    return chapa_stub.client()


# ============================================================================
# APP CLIENT
# ============================================================================


@pytest.fixture
def client(db: Session, gateway: ChapaClient):
    """Create a test client bound to the test session and stubbed gateway."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway

    # Don't use context manager - the lifespan would build a real gateway client
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "webhook_secret", SecretStr(TEST_WEBHOOK_SECRET))
    return TEST_WEBHOOK_SECRET


@pytest.fixture
def no_webhook_secret(monkeypatch) -> None:
    monkeypatch.setattr(settings, "webhook_secret", None)


def sign_body(raw_body: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def webhook_body(reference: str, **overrides: Any) -> bytes:
    payload: Dict[str, Any] = {
        "event": "charge.success",
        "status": "success",
        "data": {"tx_ref": reference, "status": "success", "amount": "1000.00", "currency": "ETB"},
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


# ============================================================================
# FACTORIES
# ============================================================================


def make_user(
    db: Session,
    *,
    role: UserRole = UserRole.STUDENT,
    full_name: str = "Test User",
    email: Optional[str] = None,
    available_balance: Decimal = Decimal("0.00"),
) -> User:
    user = User(
        email=email or f"{generate_ulid().lower()}@example.com",
        full_name=full_name,
        role=role.value,
        available_balance=available_balance,
    )
    db.add(user)
    db.commit()
    return user


def make_course(
    db: Session,
    instructor: Optional[User],
    *,
    title: str = "Amharic for Beginners",
    price: Decimal = Decimal("1000.00"),
    is_active: bool = True,
) -> Course:
    course = Course(
        title=title,
        instructor_id=instructor.id if instructor else None,
        price=price,
        is_active=is_active,
    )
    db.add(course)
    db.commit()
    return course


def make_payment(
    db: Session,
    student: User,
    course: Course,
    *,
    reference: Optional[str] = None,
    amount: Optional[Decimal] = None,
    status: PaymentStatus = PaymentStatus.PENDING,
) -> Payment:
    payment = Payment(
        student_id=student.id,
        course_id=course.id,
        amount=amount if amount is not None else course.price,
        reference=reference or f"FIDELHUB-{generate_ulid()}",
        status=status.value,
    )
    db.add(payment)
    db.commit()
    return payment


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture
def student(db: Session) -> User:
    return make_user(db, role=UserRole.STUDENT, full_name="Abebe Kebede", email="abebe@example.com")


@pytest.fixture
def instructor(db: Session) -> User:
    return make_user(db, role=UserRole.INSTRUCTOR, full_name="Hana Tesfaye")


@pytest.fixture
def course(db: Session, instructor: User) -> Course:
    return make_course(db, instructor)


@pytest.fixture
def pending_payment(db: Session, student: User, course: Course) -> Payment:
    return make_payment(db, student, course, reference="ABC-1", amount=Decimal("1000.00"))


# Factories are handed to tests as fixtures so test modules never import conftest.


@pytest.fixture
def user_factory(db: Session) -> Callable[..., User]:
    return lambda **kwargs: make_user(db, **kwargs)


@pytest.fixture
def course_factory(db: Session) -> Callable[..., Course]:
    return lambda instructor, **kwargs: make_course(db, instructor, **kwargs)


@pytest.fixture
def payment_factory(db: Session) -> Callable[..., Payment]:
    return lambda student, course, **kwargs: make_payment(db, student, course, **kwargs)


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    return auth_headers


@pytest.fixture
def build_webhook() -> Callable[..., bytes]:
    return webhook_body


@pytest.fixture
def signer() -> Callable[..., str]:
    return sign_body
