"""Tests for the BlocHQ and Paystack httpx clients."""

import asyncio
import json

import httpx
import pytest

import bloc_utils
import paystack_utils
from config import Settings


@pytest.fixture(autouse=True)
def provider_settings(monkeypatch):
    settings = Settings(
        paystack_secret="sk_test",
        paystack_base_url="https://paystack.test",
        bloc_token="bloc_test",
        bloc_base_url="https://bloc.test/v1",
    )
    monkeypatch.setattr(bloc_utils, "get_settings", lambda: settings)
    monkeypatch.setattr(paystack_utils, "get_settings", lambda: settings)
    yield settings


def mock_client(monkeypatch, module, handler):
    requests = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    monkeypatch.setattr(module, "_client", lambda: httpx.AsyncClient(transport=httpx.MockTransport(record)))
    return requests


class TestBlocCatalog:
    def test_fetch_operators_sends_bearer_token(self, monkeypatch) -> None:
        payload = {"success": True, "data": [{"name": "MTN", "id": "op_mtn"}]}
        requests = mock_client(monkeypatch, bloc_utils, lambda request: httpx.Response(200, json=payload))

        result = asyncio.run(bloc_utils.fetch_operators())

        assert result == payload
        assert requests[0].url == "https://bloc.test/v1/bills/operators?bill=telco"
        assert requests[0].headers["Authorization"] == "Bearer bloc_test"

    def test_fetch_products_hits_operator_path(self, monkeypatch) -> None:
        requests = mock_client(monkeypatch, bloc_utils, lambda request: httpx.Response(200, json={"success": True, "data": []}))

        asyncio.run(bloc_utils.fetch_products("op_mtn"))

        assert requests[0].url.path == "/v1/bills/operators/op_mtn/products"

    def test_transport_error_becomes_failure_dict(self, monkeypatch) -> None:
        def boom(request):
            raise httpx.ConnectError("unreachable", request=request)

        mock_client(monkeypatch, bloc_utils, boom)

        result = asyncio.run(bloc_utils.fetch_operators())

        assert result["success"] is False
        assert "unreachable" in result["message"]

    def test_non_json_body_becomes_failure_dict(self, monkeypatch) -> None:
        mock_client(monkeypatch, bloc_utils, lambda request: httpx.Response(502, text="<html>bad gateway</html>"))

        result = asyncio.run(bloc_utils.fetch_operators())

        assert result["success"] is False


class TestBlocHelpers:
    def test_find_operator_id_is_case_insensitive(self) -> None:
        operators = [{"name": "MTN", "id": "op_mtn"}, {"name": "Airtel", "id": "op_airtel"}]

        assert bloc_utils.find_operator_id(operators, " airtel ") == "op_airtel"
        assert bloc_utils.find_operator_id(operators, "glo") is None

    def test_fixed_fee_plans_truncates_fee(self) -> None:
        products = [
            {"id": "p1", "fee_type": "FIXED", "meta": {"fee": "500.00", "data_value": "1GB"}},
            {"id": "p2", "fee_type": "RANGE", "meta": {"fee": "0.00"}},
            {"id": "p3", "fee_type": "FIXED", "meta": {"fee": "1200"}},
        ]

        plans = bloc_utils.fixed_fee_plans(products)

        assert plans == [
            {"id": "p1", "meta": {"fee": "500", "data_value": "1GB"}},
            {"id": "p3", "meta": {"fee": "1200"}},
        ]
        # The provider payload itself is left untouched
        assert products[0]["meta"]["fee"] == "500.00"


class TestBlocPurchases:
    def test_buy_airtime_payload(self, monkeypatch) -> None:
        reply = {"success": True, "data": {"status": "successful", "reference": "bloc-1"}}
        requests = mock_client(monkeypatch, bloc_utils, lambda request: httpx.Response(200, json=reply))

        result = asyncio.run(bloc_utils.buy_airtime(10000, "08030000000", "op_mtn"))

        assert result == reply
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/bills/payment"
        assert request.url.params["bill"] == "telco"
        body = json.loads(request.content)
        assert body == {
            "amount": 10000,
            "operator_id": "op_mtn",
            "device_details": {"beneficiary_msisdn": "08030000000"},
        }

    def test_buy_data_payload(self, monkeypatch) -> None:
        requests = mock_client(monkeypatch, bloc_utils, lambda request: httpx.Response(200, json={"success": True}))

        asyncio.run(bloc_utils.buy_data("p1", "08030000000", "op_mtn"))

        body = json.loads(requests[0].content)
        assert body["product_id"] == "p1"
        assert body["operator_id"] == "op_mtn"


class TestPaystackVerify:
    def test_verify_transaction(self, monkeypatch) -> None:
        reply = {"status": True, "data": {"status": "success", "amount": 500000}}
        requests = mock_client(monkeypatch, paystack_utils, lambda request: httpx.Response(200, json=reply))

        result = asyncio.run(paystack_utils.verify_transaction("ref_123"))

        assert result == reply
        assert requests[0].url == "https://paystack.test/transaction/verify/ref_123"
        assert requests[0].headers["Authorization"] == "Bearer sk_test"

    def test_transport_error_becomes_failure_dict(self, monkeypatch) -> None:
        def boom(request):
            raise httpx.ReadTimeout("timed out", request=request)

        mock_client(monkeypatch, paystack_utils, boom)

        result = asyncio.run(paystack_utils.verify_transaction("ref_123"))

        assert result["status"] is False

    @pytest.mark.parametrize(
        "response, confirmed",
        [
            ({"status": True, "data": {"status": "success", "amount": 100}}, True),
            ({"status": True, "data": {"status": "abandoned", "amount": 100}}, False),
            ({"status": False, "message": "Transaction reference not found"}, False),
            ({"status": True, "data": None}, False),
        ],
    )
    def test_is_confirmed(self, response, confirmed) -> None:
        assert paystack_utils.is_confirmed(response) is confirmed
