import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

import bloc_utils
import paystack_utils
from balance_utils import calculate_balance, to_minor_units
from config import Settings
from errors import (
    AuthorizationError, ConflictError, InsufficientFundsError,
    NotFoundError, UpstreamError, ValidationError,
)
from models import Transaction, TransactionType, User
from schemas import (
    AirtimeRequest, DataPlanRequest, DataPlanSummary, FundRequest,
    NetworkSummary, PinRequest, TransferRequest,
)
from security_utils import authorize_pin, hash_pin

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    Transaction.transaction_type,
    Transaction.account_name,
    Transaction.account_number,
    Transaction.bank_name,
    Transaction.phone_number,
    Transaction.network,
    Transaction.data_plan,
    Transaction.electricity_meter_no,
    Transaction.note,
)
# Settled entries share one status value whichever provider confirmed them
SETTLED_STATUS = "successful"
STATUS_FILTERS = {"successful": SETTLED_STATUS, "sucessfully": SETTLED_STATUS, "failed": "failed"}
CREDIT_FILTERS = {"true": True, "false": False}

# Funding entries are credited from the platform's own Paystack account
FUND_BANK_NAME = "Decagon"
FUND_ACCOUNT_NAME = "Monie-Paddy"

_user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def user_lock(user_id: str):
    """
    Serializes balance-check-then-write sequences for one user within this process.
    """
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    async with lock:
        yield


def load_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if not user:
        logger.warning("User %s not found", user_id)
        raise NotFoundError("User not found", message="Cannot process transaction")
    return user


def refresh_balance(session: Session, user: User) -> int:
    """
    Recomputes the balance from the ledger and stores it on the user row.
    """
    balance = calculate_balance(session, user.id)
    user.balance = balance
    session.add(user)
    session.commit()
    return balance


def record_entry(session: Session, user: Optional[User] = None, **fields) -> Transaction:
    entry = Transaction(**fields)
    session.add(entry)
    if user is not None:
        session.add(user)
    session.commit()
    session.refresh(entry)
    logger.info(
        "Recorded %s %s of %s for user %s",
        entry.transaction_type, "credit" if entry.credit else "debit", entry.amount, entry.user_id,
    )
    return entry

# --- CATALOG ---

async def list_networks() -> list:
    response = await bloc_utils.fetch_operators()
    if not response.get("success"):
        raise UpstreamError("Could not fetch networks", message="Networks unavailable")
    return [NetworkSummary(name=item["name"], id=item["id"]) for item in response.get("data") or []]


async def resolve_operator_id(network: Optional[str]) -> str:
    if not network:
        raise ValidationError("Network id not provided")
    response = await bloc_utils.fetch_operators()
    if not response.get("success"):
        raise UpstreamError("Could not fetch networks", message="Networks unavailable")
    operator_id = bloc_utils.find_operator_id(response.get("data") or [], network)
    if not operator_id:
        raise ValidationError(f"Unknown network '{network}'")
    return operator_id


async def list_data_plans(network: Optional[str]) -> list:
    operator_id = await resolve_operator_id(network)
    response = await bloc_utils.fetch_products(operator_id)
    if not response.get("success"):
        raise UpstreamError("Could not fetch data plans", message="Data Plans unavailable")
    return [DataPlanSummary(**plan) for plan in bloc_utils.fixed_fee_plans(response.get("data") or [])]


async def fetch_data_plan(network: str, plan_id: str) -> tuple:
    """
    Returns (plan, operator_id) for a plan id on the given network.
    """
    operator_id = await resolve_operator_id(network)
    response = await bloc_utils.fetch_products(operator_id)
    if not response.get("success"):
        raise UpstreamError("Error getting plan", message="Data Plans unavailable")
    for plan in bloc_utils.fixed_fee_plans(response.get("data") or []):
        if plan["id"] == plan_id:
            return plan, operator_id
    raise NotFoundError(f"Data plan {plan_id} not found", message="Error getting plan")

# --- PURCHASES ---

async def _purchase(
    session: Session,
    settings: Settings,
    user: User,
    amount: int,
    pin: str,
    purchase: Callable[[], Awaitable[dict]],
    **entry_fields,
) -> Transaction:
    async with user_lock(user.id):
        balance = refresh_balance(session, user)
        authorize_pin(pin, user.transaction_pin)
        if balance < amount:
            logger.warning("Insufficient funds for user %s: %s < %s", user.id, balance, amount)
            raise InsufficientFundsError("Insufficient balance", message="purchase failed")

        if settings.dry_run:
            logger.info("Dry run: skipping provider call for %s", entry_fields["transaction_type"])
            user.balance = balance - amount
            return record_entry(session, user, user_id=user.id, amount=amount, credit=False, **entry_fields)

        response = await purchase()
        if not response.get("success"):
            logger.error("Purchase failed at provider: %s", response.get("message"))
            raise UpstreamError(response.get("message") or "Provider rejected the purchase", message="purchase failed")

        data = response.get("data") or {}
        status, reference = data.get("status"), data.get("reference")
        if status != SETTLED_STATUS:
            # The provider attempt happened; no debit is written and no reversal is attempted
            logger.error("%s purchase not successful (reference %s, status %s)", entry_fields["transaction_type"], reference, status)
            raise UpstreamError(
                f"{entry_fields['transaction_type'].capitalize()} purchase not successful",
                message="purchase failed", status_code=400, data=reference,
            )

        user.balance = balance - amount
        return record_entry(
            session, user,
            user_id=user.id, amount=amount, credit=False,
            reference=reference, status=status, **entry_fields,
        )


async def buy_airtime(session: Session, settings: Settings, user_id: str, request: AirtimeRequest) -> Transaction:
    user = load_user(session, user_id)
    amount = to_minor_units(request.amount)

    async def purchase():
        operator_id = await resolve_operator_id(request.network)
        return await bloc_utils.buy_airtime(amount, request.phone_number, operator_id)

    return await _purchase(
        session, settings, user, amount, request.transaction_pin, purchase,
        transaction_type=TransactionType.AIRTIME.value,
        phone_number=request.phone_number,
        network=request.network,
    )


async def buy_data(session: Session, settings: Settings, user_id: str, request: DataPlanRequest) -> Transaction:
    user = load_user(session, user_id)
    # Plan lookup gates everything else
    plan, operator_id = await fetch_data_plan(request.network, request.data_plan_id)
    fee = str(plan["meta"].get("fee", ""))
    if not fee.isdigit():
        logger.error("Data plan %s has no usable fee: %r", request.data_plan_id, fee)
        raise UpstreamError("Data plan has no usable fee", message="Error getting plan")
    amount = to_minor_units(fee)

    async def purchase():
        return await bloc_utils.buy_data(request.data_plan_id, request.phone_number, operator_id)

    return await _purchase(
        session, settings, user, amount, request.transaction_pin, purchase,
        transaction_type=TransactionType.DATA.value,
        phone_number=request.phone_number,
        network=request.network,
        data_plan=request.data_plan_id,
    )

# --- TRANSFER & FUNDING ---

async def bank_transfer(session: Session, user_id: str, request: TransferRequest) -> Transaction:
    user = load_user(session, user_id)
    authorize_pin(request.pin, user.transaction_pin, error="Invalid credentials")
    amount = to_minor_units(request.amount)

    async with user_lock(user.id):
        balance = calculate_balance(session, user.id)
        if balance < amount:
            logger.warning("Insufficient funds for transfer by user %s", user.id)
            raise InsufficientFundsError("Insufficient funds", message="Transaction failed", status_code=409)

        user.balance = balance - amount
        return record_entry(
            session, user,
            user_id=user.id,
            amount=amount,
            credit=False,
            transaction_type=TransactionType.TRANSFER.value,
            account_name=request.account_name,
            account_number=request.account_number,
            bank_name=request.bank_name,
            note=request.note,
        )


async def fund_account(session: Session, user_id: str, request: FundRequest) -> int:
    """
    Credits the wallet with the amount Paystack reports for a charge reference.
    Each reference can be credited once.
    """
    user = load_user(session, user_id)
    reference = request.reference

    async with user_lock(user.id):
        processed = session.exec(select(Transaction).where(Transaction.reference == reference)).first()
        if processed:
            logger.warning("Reference %s already processed", reference)
            raise ConflictError("This transaction has been processed already")

        response = await paystack_utils.verify_transaction(reference)
        if not paystack_utils.is_confirmed(response):
            logger.error("Error funding %s wallet: %s", user.email, response.get("message"))
            raise UpstreamError("Could not confirm transaction", message="Transaction failed", status_code=500)

        credit_amount = int(response["data"]["amount"])
        try:
            record_entry(
                session,
                user_id=user.id,
                amount=credit_amount,
                credit=True,
                transaction_type=TransactionType.FUND.value,
                reference=reference,
                status=SETTLED_STATUS,
                bank_name=FUND_BANK_NAME,
                account_name=FUND_ACCOUNT_NAME,
            )
        except IntegrityError:
            session.rollback()
            logger.warning("Reference %s was credited concurrently", reference)
            raise ConflictError("This transaction has been processed already")
        return credit_amount

# --- HISTORY ---

def search_transactions(session: Session, user_id: str, search: Optional[str] = None, filter: Optional[str] = None) -> list:
    # The owner constraint is applied first and no filter value removes it
    statement = select(Transaction).where(Transaction.user_id == user_id)

    if search:
        needle = search.lower()
        statement = statement.where(
            or_(*(func.lower(col(field)).contains(needle, autoescape=True) for field in SEARCH_FIELDS))
        )

    if filter in STATUS_FILTERS:
        statement = statement.where(Transaction.status == STATUS_FILTERS[filter])
    elif filter in CREDIT_FILTERS:
        statement = statement.where(Transaction.credit == CREDIT_FILTERS[filter])

    statement = statement.order_by(col(Transaction.created_at).desc())
    return list(session.exec(statement).all())

# --- PIN ---

def set_transaction_pin(session: Session, user_id: str, request: PinRequest) -> None:
    user = load_user(session, user_id)
    if user.transaction_pin:
        if not request.current_pin:
            raise AuthorizationError("Current pin required")
        authorize_pin(request.current_pin, user.transaction_pin)
    user.transaction_pin = hash_pin(request.pin)
    session.add(user)
    session.commit()
    logger.info("Transaction pin updated for user %s", user.id)
