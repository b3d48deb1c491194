from enum import Enum
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_user_id() -> str:
    return uuid.uuid4().hex


class TransactionType(str, Enum):
    AIRTIME = "airtime"
    DATA = "data"
    TRANSFER = "transfer"
    FUND = "fund wallet"


class User(SQLModel, table=True):
    id: str = Field(default_factory=new_user_id, primary_key=True)
    email: str = Field(index=True)
    transaction_pin: Optional[str] = None  # bcrypt hash
    balance: int = Field(default=0)  # minor units, refreshed from the ledger before spends
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class Transaction(SQLModel, table=True):
    """
    One ledger entry. Rows are inserted once and never updated.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    amount: int  # minor units (kobo)
    credit: bool
    transaction_type: str

    phone_number: Optional[str] = None
    network: Optional[str] = None
    data_plan: Optional[str] = None
    electricity_meter_no: Optional[str] = None

    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    note: Optional[str] = None

    reference: Optional[str] = Field(default=None, unique=True, index=True)
    status: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
