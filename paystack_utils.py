import logging
import httpx

from config import get_settings

logger = logging.getLogger(__name__)


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {get_settings().paystack_secret}",
        "Content-Type": "application/json"
    }

def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient()

async def verify_transaction(reference: str) -> dict:
    """
    Async: Asks Paystack whether a charge with this reference went through.
    Amounts in the response are already in kobo.
    """
    url = f"{get_settings().paystack_base_url}/transaction/verify/{reference}"

    try:
        async with _client() as client:
            req = await client.get(url, headers=_headers())
        return req.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Paystack verify failed for %s: %s", reference, e)
        return {"status": False, "message": str(e)}

def is_confirmed(response: dict) -> bool:
    data = response.get("data") or {}
    return bool(response.get("status")) and data.get("status") == "success"
