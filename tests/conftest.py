"""Fixtures: chaves VAPID descartáveis, banco SQLite em memória e um serviço push falso."""

import base64
import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


_TEST_KEY = ec.generate_private_key(ec.SECP256R1())
TEST_VAPID_PRIVATE_KEY = _b64url(_TEST_KEY.private_numbers().private_value.to_bytes(32, "big"))
TEST_VAPID_PUBLIC_KEY = _b64url(
    _TEST_KEY.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
)
TEST_PUBLIC_KEY_PEM = _TEST_KEY.public_key().public_bytes(
    serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
).decode("ascii")

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ["VAPID_PRIVATE_KEY"] = TEST_VAPID_PRIVATE_KEY
os.environ["VAPID_PUBLIC_KEY"] = TEST_VAPID_PUBLIC_KEY

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_push_service
from app.core import security
from app.core.config import settings
from app.db.base import Base
from app.models.activity import CapsuleDay, ProgressHistory, WaterIntakeHistory  # noqa: F401
from app.models.notification_settings import NotificationSettings
from app.models.profile import Profile  # noqa: F401
from app.models.subscription import PushSubscription
from app.models.user import User
from app.main import app
from app.services.push import DeliveryResult

# 08:01 em Brasília (UTC-3)
NOW = datetime(2026, 3, 10, 11, 1, tzinfo=timezone.utc)


class FakePushService:
    """Registra as entregas e responde com o resultado configurado."""

    def __init__(self, result: DeliveryResult | None = None):
        self.result = result or DeliveryResult(ok=True, status_code=201)
        self.calls: list[tuple[PushSubscription, object]] = []
        self.on_deliver = None

    def deliver(self, subscription, payload):
        self.calls.append((subscription, payload))
        if self.on_deliver is not None:
            hook, self.on_deliver = self.on_deliver, None
            hook()
        return self.result

    def send_notification(self, subscription, payload):
        return self.deliver(subscription, payload).ok

    @property
    def payloads(self):
        return [payload for _, payload in self.calls]


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def vapid_keys() -> dict:
    return {
        "private": TEST_VAPID_PRIVATE_KEY,
        "public": TEST_VAPID_PUBLIC_KEY,
        "public_pem": TEST_PUBLIC_KEY_PEM,
    }


@pytest.fixture()
def fake_push() -> FakePushService:
    return FakePushService()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def create(full_name="Maria Silva", created_at=NOW, subscribed=True, **settings_kwargs):
        counter["n"] += 1
        user = User(full_name=full_name, email=f"user{counter['n']}@levefit.test", created_at=created_at)
        db_session.add(user)
        db_session.flush()
        if subscribed:
            db_session.add(PushSubscription(
                user_id=user.id,
                endpoint=f"https://fcm.googleapis.com/fcm/send/device-{user.id}",
                p256dh="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
                auth="tBHItJI5svbpez7KI4CCXg",
            ))
        if settings_kwargs:
            db_session.add(NotificationSettings(user_id=user.id, **settings_kwargs))
        db_session.commit()
        return user

    return create


@pytest.fixture()
def client(db_session: Session, fake_push: FakePushService) -> Generator[TestClient, None, None]:

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_push_service():
        yield fake_push

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_service] = override_get_push_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def login(client: TestClient):
    def authenticate(user: User) -> TestClient:
        token = jwt.encode(
            {"sub": str(user.id), "exp": datetime.now(timezone.utc) + timedelta(minutes=30)},
            settings.SECRET_KEY,
            algorithm=security.ALGORITHM,
        )
        client.cookies.set("access_token", f"Bearer {token}")
        return client

    return authenticate
