from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, func
from sqlmodel import Session, select

from models import Transaction

MINOR_UNITS_PER_MAJOR = 100


def calculate_balance(session: Session, user_id: str) -> int:
    """
    Folds a user's ledger into one signed balance in minor units.
    Credits add, everything else subtracts.
    """
    signed_amount = case(
        (Transaction.credit == True, Transaction.amount),  # noqa: E712
        else_=-Transaction.amount,
    )
    statement = select(func.coalesce(func.sum(signed_amount), 0)).where(Transaction.user_id == user_id)
    return int(session.exec(statement).one())


def to_minor_units(amount) -> int:
    """
    Turns a request amount in major units (naira) into minor units (kobo).
    Any remainder below one kobo is rounded half-up.
    """
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
