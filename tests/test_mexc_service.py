from types import SimpleNamespace

import pytest
import requests

from fakes import FIXED_MS, FakeResponse
from services.config import MexcConfig
from services.errors import ConfigurationError, ExchangeAPIError
from services.mexc_service import API_KEY_HEADER, MexcClient, build_order_request
from services.models import BUY, LIMIT, MARKET, SELL, MexcCredentials, OrderRequest
from services.signature_service import sign

ACCOUNT_PAYLOAD = {
    "canTrade": True,
    "canWithdraw": False,
    "canDeposit": True,
    "accountType": "SPOT",
    "permissions": ["SPOT"],
    "balances": [
        {"asset": "USDT", "free": "1500.5", "locked": "0"},
        {"asset": "BTC", "free": "0", "locked": "0"},
        {"asset": "ETH", "free": "0", "locked": "0.25"},
    ],
}


def _trade(direction="Long", entry_type="Limit Order", entry="100"):
    return SimpleNamespace(direction=direction, entry_type=entry_type, entry=entry)


def test_account_request_signs_exactly_the_timestamp(client, session, credentials):
    session.queue(FakeResponse(200, ACCOUNT_PAYLOAD))

    account = client.get_account_info(credentials)

    call = session.calls[0]
    expected_signature = sign(credentials.secret_key, f"timestamp={FIXED_MS}")
    assert call["method"] == "GET"
    assert call["url"] == f"https://api.mexc.com/api/v3/account?timestamp={FIXED_MS}&signature={expected_signature}"
    assert call["headers"][API_KEY_HEADER] == credentials.api_key
    # the secret never leaves the process, the key only travels as a header
    assert credentials.secret_key not in call["url"]
    assert credentials.api_key not in call["url"]

    assert account.can_trade is True
    assert account.account_type == "SPOT"
    assert len(account.balances) == 3
    assert [b.asset for b in account.non_zero_balances()] == ["USDT", "ETH"]
    assert account.free_balance("USDT") == 1500.5


def test_recv_window_included_when_configured(session, credentials):
    client = MexcClient(MexcConfig(recv_window=5000), session=session, clock=lambda: FIXED_MS)
    session.queue(FakeResponse(200, ACCOUNT_PAYLOAD))

    client.get_account_info(credentials)

    query = session.calls[0]["url"].split("?", 1)[1]
    signed_part, signature = query.rsplit("&signature=", 1)
    assert signed_part == f"recvWindow=5000&timestamp={FIXED_MS}"
    assert signature == sign(credentials.secret_key, signed_part)


def test_limit_order_params_sorted_with_price(client, session, credentials):
    session.queue(FakeResponse(200, {"symbol": "BTCUSDT", "orderId": "C02__1", "price": "100",
                                     "origQty": "0.5", "type": "LIMIT", "side": "BUY",
                                     "transactTime": FIXED_MS}))

    response = client.place_order(credentials, _trade(), "BTCUSDT", "0.5")

    call = session.calls[0]
    assert call["method"] == "POST"
    query = call["url"].split("?", 1)[1]
    signed_part = query.rsplit("&signature=", 1)[0]
    assert signed_part == f"price=100&quantity=0.5&side=BUY&symbol=BTCUSDT&timestamp={FIXED_MS}&type=LIMIT"
    assert response.order_id == "C02__1"
    assert response.orig_qty == "0.5"


def test_market_order_omits_price(client, session, credentials):
    session.queue(FakeResponse(200, {"orderId": "2", "type": "MARKET", "side": "SELL"}))

    client.place_order(credentials, _trade(direction="Short", entry_type="Confirmation Entry"), "ETHUSDT", "1")

    signed_part = session.calls[0]["url"].split("?", 1)[1].rsplit("&signature=", 1)[0]
    assert "price=" not in signed_part
    assert "side=SELL" in signed_part
    assert "type=MARKET" in signed_part


def test_direction_maps_to_side():
    assert build_order_request(_trade("Long"), "BTCUSDT", "1", 1).side == BUY
    assert build_order_request(_trade("Short"), "BTCUSDT", "1", 1).side == SELL
    assert build_order_request(_trade(entry_type="Limit Order"), "BTCUSDT", "1", 1).type == LIMIT
    assert build_order_request(_trade(entry_type="Confirmation Entry"), "BTCUSDT", "1", 1).type == MARKET


def test_order_request_price_only_for_limit():
    with pytest.raises(ValueError):
        OrderRequest(symbol="BTCUSDT", side=BUY, type=LIMIT, quantity="1", timestamp=1)
    with pytest.raises(ValueError):
        OrderRequest(symbol="BTCUSDT", side=BUY, type=MARKET, quantity="1", timestamp=1, price="10")
    with pytest.raises(ValueError):
        OrderRequest(symbol="BTCUSDT", side="HOLD", type=MARKET, quantity="1", timestamp=1)


def test_non_2xx_raises_with_status_and_body(client, session, credentials):
    session.queue(FakeResponse(400, text='{"code":700002,"msg":"Signature for this request is not valid."}'))

    with pytest.raises(ExchangeAPIError) as excinfo:
        client.get_account_info(credentials)

    assert excinfo.value.status_code == 400
    assert "700002" in excinfo.value.body
    assert "400" in str(excinfo.value)


def test_network_error_has_no_status(client, session):
    session.queue(requests.ConnectionError("connection refused"))

    with pytest.raises(ExchangeAPIError) as excinfo:
        client.get_price("BTCUSDT")

    assert excinfo.value.status_code is None
    assert "connection refused" in excinfo.value.body


def test_invalid_json_raises(client, session):
    session.queue(FakeResponse(200, text="<html>maintenance</html>"))

    with pytest.raises(ExchangeAPIError):
        client.get_price("BTCUSDT")


def test_missing_api_key_is_configuration_error(client, session):
    with pytest.raises(ConfigurationError):
        client.get_account_info(MexcCredentials(api_key="", secret_key="x" * 30))
    assert session.calls == []


def test_authorized_symbols_absent_list_is_empty(client, session, credentials):
    session.queue(FakeResponse(200, {"code": 200}), FakeResponse(200, {"code": 200, "data": ["BTCUSDT"]}))

    assert client.get_authorized_symbols(credentials) == []
    assert client.get_authorized_symbols(credentials) == ["BTCUSDT"]
    assert session.calls[0]["url"].startswith("https://api.mexc.com/api/v3/selfSymbols?timestamp=")


def test_get_price_is_public(client, session):
    session.queue(FakeResponse(200, {"symbol": "BTCUSDT", "price": "64250.12"}))

    assert client.get_price("BTCUSDT") == 64250.12
    call = session.calls[0]
    assert call["params"] == {"symbol": "BTCUSDT"}
    assert API_KEY_HEADER not in call["headers"]
    assert call["timeout"] == 10.0


def test_list_symbols_keeps_enabled_usdt_pairs(client, session):
    session.queue(FakeResponse(200, {"symbols": [
        {"symbol": "BTCUSDT", "status": "1", "quoteAsset": "USDT"},
        {"symbol": "ETHUSDT", "status": "ENABLED", "quoteAsset": "USDT"},
        {"symbol": "ETHBTC", "status": "1", "quoteAsset": "BTC"},
        {"symbol": "OLDUSDT", "status": "2", "quoteAsset": "USDT"},
    ]}))

    assert client.list_symbols() == ["BTCUSDT", "ETHUSDT"]


def test_client_never_retries(client, session, credentials):
    session.queue(FakeResponse(503, text="busy"), FakeResponse(200, {"orderId": "late"}))

    with pytest.raises(ExchangeAPIError):
        client.place_order(credentials, _trade(), "BTCUSDT", "1")

    assert len(session.calls) == 1


def test_price_body_without_price_is_exchange_error(client, session):
    session.queue(FakeResponse(200, {"symbol": "BTCUSDT"}))

    with pytest.raises(ExchangeAPIError) as excinfo:
        client.get_price("BTCUSDT")

    assert excinfo.value.operation == "get_price"
    assert excinfo.value.status_code == 200


def test_symbol_entry_without_symbol_is_exchange_error(client, session):
    session.queue(FakeResponse(200, {"symbols": [{"status": "1", "quoteAsset": "USDT"}]}))

    with pytest.raises(ExchangeAPIError) as excinfo:
        client.list_symbols()

    assert excinfo.value.operation == "list_symbols"
