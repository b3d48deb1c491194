from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PHONE_PATTERN = r"^\+?\d{10,14}$"
PIN_PATTERN = r"^\d{4}$"


class WalletRequest(BaseModel):
    # Wire fields are camelCase
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class AirtimeRequest(WalletRequest):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    phone_number: str = Field(alias="phoneNumber", pattern=PHONE_PATTERN)
    network: str = Field(min_length=1, max_length=32)
    transaction_pin: str = Field(alias="transactionPin", min_length=1, max_length=128)


class DataPlanRequest(WalletRequest):
    data_plan_id: str = Field(alias="dataPlanId", min_length=1)
    phone_number: str = Field(alias="phoneNumber", pattern=PHONE_PATTERN)
    network: str = Field(min_length=1, max_length=32)
    transaction_pin: str = Field(alias="transactionPin", min_length=1, max_length=128)


class TransferRequest(WalletRequest):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    bank_name: str = Field(alias="bankName", min_length=1, max_length=100)
    account_name: str = Field(alias="accountName", min_length=1, max_length=100)
    account_number: str = Field(alias="accountNumber", pattern=r"^\d{10}$")
    note: Optional[str] = Field(default=None, max_length=140)
    pin: str = Field(min_length=1, max_length=128)


class FundRequest(WalletRequest):
    reference: str = Field(min_length=1, max_length=100)


class PinRequest(WalletRequest):
    pin: str = Field(pattern=PIN_PATTERN)
    current_pin: Optional[str] = Field(default=None, alias="currentPin")


class NetworkSummary(BaseModel):
    name: str
    id: str


class DataPlanSummary(BaseModel):
    id: str
    meta: dict
