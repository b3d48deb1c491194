import os

# database.py refuses to import without a URL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

import models  # noqa: F401
from config import Settings, get_settings
from database import get_session
from main import app
from models import Transaction, User
from security_utils import hash_pin, issue_token

SECRET_KEY = "test-secret"
PIN = "1234"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings():
    return Settings(secret_key=SECRET_KEY, paystack_secret="sk_test", bloc_token="bloc_test")


@pytest.fixture
def client(session, settings):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(email: str = "ada@example.com", pin: str | None = PIN) -> User:
        user = User(email=email, transaction_pin=hash_pin(pin) if pin else None)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_token(user.id, SECRET_KEY)}"}

    return _auth_headers


@pytest.fixture
def add_entry(session):
    def _add_entry(user: User, amount: int, credit: bool, **fields) -> Transaction:
        fields.setdefault("transaction_type", "fund wallet" if credit else "transfer")
        entry = Transaction(user_id=user.id, amount=amount, credit=credit, **fields)
        session.add(entry)
        session.commit()
        session.refresh(entry)
        return entry

    return _add_entry


@pytest.fixture
def ledger(session):
    def _ledger(user: User) -> list:
        return list(session.exec(select(Transaction).where(Transaction.user_id == user.id)).all())

    return _ledger


class FakeBloc:
    """Stands in for the BlocHQ API; records every call."""

    def __init__(self):
        self.calls = []
        self.operators = {"success": True, "data": [{"name": "MTN", "id": "op_mtn"}, {"name": "Airtel", "id": "op_airtel"}]}
        self.products = {
            "success": True,
            "data": [
                {"id": "plan-1gb", "fee_type": "FIXED", "meta": {"fee": "300.00", "data_value": "1GB"}},
                {"id": "plan-range", "fee_type": "RANGE", "meta": {"fee": "0.00"}},
            ],
        }
        self.purchase = {"success": True, "data": {"status": "successful", "reference": "bloc-ref-1"}}

    async def fetch_operators(self):
        self.calls.append(("fetch_operators",))
        return self.operators

    async def fetch_products(self, operator_id):
        self.calls.append(("fetch_products", operator_id))
        return self.products

    async def buy_airtime(self, amount_kobo, phone, operator_id):
        self.calls.append(("buy_airtime", amount_kobo, phone, operator_id))
        return self.purchase

    async def buy_data(self, plan_id, phone, operator_id):
        self.calls.append(("buy_data", plan_id, phone, operator_id))
        return self.purchase

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def fake_bloc(monkeypatch):
    import bloc_utils

    fake = FakeBloc()
    for name in ("fetch_operators", "fetch_products", "buy_airtime", "buy_data"):
        monkeypatch.setattr(bloc_utils, name, getattr(fake, name))
    return fake


class FakePaystack:
    def __init__(self):
        self.calls = []
        self.response = {"status": True, "data": {"status": "success", "amount": 500000}}

    async def verify_transaction(self, reference):
        self.calls.append(reference)
        return self.response


@pytest.fixture
def fake_paystack(monkeypatch):
    import paystack_utils

    fake = FakePaystack()
    monkeypatch.setattr(paystack_utils, "verify_transaction", fake.verify_transaction)
    return fake
