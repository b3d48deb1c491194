import logging
from typing import Optional

import httpx

from config import get_settings

logger = logging.getLogger(__name__)

TELCO_BILL = {"bill": "telco"}


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {get_settings().bloc_token}",
        "Content-Type": "application/json"
    }

def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient()

def _url(path: str) -> str:
    return f"{get_settings().bloc_base_url}{path}"

async def _get(path: str) -> dict:
    try:
        async with _client() as client:
            req = await client.get(_url(path), params=TELCO_BILL, headers=_headers())
        return req.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("BlocHQ GET %s failed: %s", path, e)
        return {"success": False, "message": str(e)}

# --- CATALOG ---

async def fetch_operators() -> dict:
    """
    Async: Lists the telco operators (MTN, Airtel, ...) BlocHQ can bill.
    """
    return await _get("/bills/operators")

async def fetch_products(operator_id: str) -> dict:
    return await _get(f"/bills/operators/{operator_id}/products")

def find_operator_id(operators: list, network: str) -> Optional[str]:
    """
    Matches a network name like "mtn" against the operator catalog.
    """
    wanted = network.strip().lower()
    for item in operators:
        if str(item.get("name", "")).strip().lower() == wanted:
            return item.get("id")
    return None

def fixed_fee_plans(products: list) -> list:
    """
    Keeps FIXED-fee plans only, with the fee cut at the decimal point ("500.00" -> "500").
    """
    plans = []
    for item in products:
        if item.get("fee_type") != "FIXED":
            continue
        meta = dict(item.get("meta") or {})
        meta["fee"] = str(meta.get("fee", "")).split(".")[0]
        plans.append({"id": item.get("id"), "meta": meta})
    return plans

# --- PURCHASES ---

async def _pay(payload: dict) -> dict:
    try:
        async with _client() as client:
            req = await client.post(_url("/bills/payment"), params=TELCO_BILL, json=payload, headers=_headers())
        return req.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("BlocHQ payment failed: %s", e)
        return {"success": False, "message": str(e)}

async def buy_airtime(amount_kobo: int, phone: str, operator_id: str) -> dict:
    payload = {
        "amount": amount_kobo,
        "operator_id": operator_id,
        "device_details": {"beneficiary_msisdn": phone},
    }
    return await _pay(payload)

async def buy_data(plan_id: str, phone: str, operator_id: str) -> dict:
    payload = {
        "product_id": plan_id,
        "operator_id": operator_id,
        "device_details": {"beneficiary_msisdn": phone},
    }
    return await _pay(payload)
