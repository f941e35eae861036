import hashlib
import hmac
import itertools
import json
import os
from unittest.mock import MagicMock

os.environ.setdefault("POSTGRES_USER", "test")
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("POSTGRES_DB", "test")
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "30")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["CLIENT_URL"] = "http://client.test"
os.environ["ENV"] = "test"

from datetime import datetime, timedelta

import pytest
from jose import jwt
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import app.models  # noqa: F401
from app.config import settings
from app.database import get_session
from app.main import app as fastapi_app
from app.models.course import Course, Lecture
from app.models.user import User
from app.services.payment_gateway import RazorpayGateway, get_payment_gateway

WEBHOOK_SECRET = "whsec_test"


def access_token(user_id: int) -> str:
    """Bearer token as the accounts service would issue it."""
    return jwt.encode(
        {"sub": str(user_id), "exp": datetime.utcnow() + timedelta(minutes=30)},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    """Real Razorpay client; only its HTTP resources are mocked."""
    gateway = RazorpayGateway("rzp_test_key", "rzp_test_secret", timeout=5)
    gateway.client.payment_link = MagicMock()

    counter = itertools.count(1)

    def create(data, **kwargs):
        link_id = f"plink_{next(counter):04d}"
        return {
            "id": link_id,
            "short_url": f"https://rzp.io/i/{link_id}",
            "amount": data["amount"],
            "amount_paid": 0,
            "status": "created",
            "notes": data["notes"],
        }

    gateway.client.payment_link.create.side_effect = create
    return gateway


@pytest.fixture
def client(session, gateway):
    fastapi_app.dependency_overrides[get_session] = lambda: session
    fastapi_app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def app_settings():
    return settings


@pytest.fixture
def creator(session):
    user = User(
        first_name="Linh",
        last_name="Tran",
        username="linh",
        email="linh@example.com",
        password="x",
        role="instructor",
        photo_url="https://cdn.example.com/linh.png",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def student(session):
    user = User(
        first_name="An",
        last_name="Nguyen",
        username="an",
        email="an@example.com",
        password="x",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def course(session, creator):
    course = Course(
        title="FastAPI from Scratch",
        subtitle="Build real APIs",
        category="Backend",
        level="Beginner",
        thumbnail="https://cdn.example.com/fastapi.png",
        price=100000,
        is_published=True,
        creator_id=creator.id,
    )
    session.add(course)
    session.commit()
    session.refresh(course)

    session.add(Lecture(course_id=course.id, title="Routing", position=2))
    session.add(Lecture(course_id=course.id, title="Intro", position=1, is_preview_free=True))
    session.commit()
    return course


@pytest.fixture
def auth_headers(student):
    return {"Authorization": f"Bearer {access_token(student.id)}"}


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def paid_event(purchase, amount_paid=None, event="payment_link.paid") -> bytes:
    return json.dumps({
        "entity": "event",
        "event": event,
        "payload": {
            "payment_link": {
                "entity": {
                    "id": purchase.payment_id,
                    "status": "paid",
                    "amount": purchase.amount,
                    "amount_paid": purchase.amount if amount_paid is None else amount_paid,
                    "notes": {
                        "course_id": str(purchase.course_id),
                        "user_id": str(purchase.user_id),
                        "purchase_id": str(purchase.id),
                    },
                }
            }
        },
    }).encode("utf-8")


@pytest.fixture
def signer():
    return sign


@pytest.fixture
def event_body():
    return paid_event
