import logging
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from contextlib import asynccontextmanager
from sqlmodel import Session

import wallet
from balance_utils import calculate_balance
from config import Settings, get_settings
from database import init_db, get_session
from errors import AuthorizationError, InternalError, ValidationError, WalletError
from schemas import AirtimeRequest, DataPlanRequest, FundRequest, PinRequest, TransferRequest
from security_utils import read_token

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield

app = FastAPI(lifespan=lifespan, title="Monie-Paddy Wallet")

# --- ERROR RESPONSES ---

@app.exception_handler(WalletError)
async def wallet_error_handler(request: Request, exc: WalletError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    detail = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "invalid request")
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=400, content=ValidationError(detail).to_dict())

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError("Unexpected error").to_dict())

# --- AUTH CONTEXT ---

bearer_scheme = HTTPBearer(auto_error=False)

def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthorizationError("Unauthorised", message="No token provided", status_code=401)
    return read_token(credentials.credentials, settings.secret_key)

# --- ROUTES ---

@app.get("/transactions/balance")
async def get_balance(user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    balance = calculate_balance(session, user_id)
    return {"message": "User balance", "data": balance}

@app.post("/transactions/airtime")
async def buy_airtime(
    body: AirtimeRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    transaction = await wallet.buy_airtime(session, settings, user_id, body)
    message = "Purchase successful" if settings.dry_run else "successfully purchased airtime"
    return {"message": message, "data": transaction}

@app.post("/transactions/data")
async def buy_data(
    body: DataPlanRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    transaction = await wallet.buy_data(session, settings, user_id, body)
    message = "Purchase successful" if settings.dry_run else "successfully purchased data"
    return {"message": message, "data": transaction}

@app.post("/transactions/transfer")
async def bank_transfer(
    body: TransferRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    transfer = await wallet.bank_transfer(session, user_id, body)
    return {"message": "Transfer successful", "data": transfer}

@app.post("/transactions/fund")
async def fund_account(
    body: FundRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    credited = await wallet.fund_account(session, user_id, body)
    return {"message": "Success", "data": credited}

@app.get("/transactions")
async def get_transactions(
    search: Optional[str] = None,
    filter: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    transactions = wallet.search_transactions(session, user_id, search=search, filter=filter)
    return {"message": "Transactions", "data": transactions}

@app.get("/transactions/networks")
async def get_networks():
    networks = await wallet.list_networks()
    return {"message": "Networks", "data": networks}

@app.get("/transactions/data-plans")
async def get_data_plans(network: Optional[str] = None):
    plans = await wallet.list_data_plans(network)
    return {"message": "Data Plans", "data": plans}

@app.post("/transactions/pin")
async def set_pin(
    body: PinRequest,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    wallet.set_transaction_pin(session, user_id, body)
    return {"message": "Transaction pin set", "data": None}
