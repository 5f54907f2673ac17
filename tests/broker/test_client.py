"""Tests for the brokerage REST client."""

import io
from datetime import datetime, timezone
from decimal import Decimal
from http.client import IncompleteRead
from unittest.mock import MagicMock, Mock, patch
from urllib.error import HTTPError, URLError

import orjson
import pytest

from tradebot_app.broker.client import BrokerClient
from tradebot_app.config.defaults import BrokerParams
from tradebot_app.errors import (
    BrokerError,
    BrokerResponseError,
    BrokerUnreachableError,
    ConfigurationError,
)

PARAMS = BrokerParams(
    base_url="https://broker.test",
    data_url="https://data.test/v2",
    api_key_id="key-id",
    api_secret_key="secret",
)


def http_ok(payload, status=200):
    response = MagicMock()
    response.__enter__.return_value = response
    response.getcode.return_value = status
    response.read.return_value = orjson.dumps(payload) if payload is not None else b""
    return response


def http_error(status, body=b'{"message":"unavailable"}'):
    return HTTPError("https://broker.test", status, "error", {}, io.BytesIO(body))


def sent_request(urlopen, index=-1):
    return urlopen.call_args_list[index].args[0]


class TestClientConfiguration:
    """Test client construction."""

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError) as exc_info:
            BrokerClient(BrokerParams())
        assert exc_info.value.field == "api_key_id"

    def test_trailing_slashes_stripped(self):
        client = BrokerClient(BrokerParams(
            base_url="https://broker.test/", data_url="https://data.test/v2/",
            api_key_id="k", api_secret_key="s",
        ))
        assert client.base_url == "https://broker.test"
        assert client.data_url == "https://data.test/v2"


@patch("tradebot_app.broker.client.urlopen")
class TestHeaders:
    """Test credential and idempotency headers."""

    def setup_method(self):
        self.keys = Mock(side_effect=["key-1", "key-2", "key-3"])
        self.sleep = Mock()
        self.client = BrokerClient(PARAMS, sleep=self.sleep, idempotency_key_factory=self.keys)

    def test_get_has_credentials_but_no_idempotency_key(self, urlopen):
        urlopen.return_value = http_ok({"id": "acct"})

        self.client.get_account()

        request = sent_request(urlopen)
        assert request.get_method() == "GET"
        assert request.full_url == "https://broker.test/v2/account"
        assert request.get_header("Apca-api-key-id") == "key-id"
        assert request.get_header("Apca-api-secret-key") == "secret"
        assert request.get_header("Idempotency-key") is None
        assert request.data is None

    def test_each_post_gets_fresh_key(self, urlopen):
        urlopen.return_value = http_ok({"id": "o1"})

        self.client.place_marketable_limit_buy("ASTC", 32, Decimal("6.37"), True)
        self.client.place_marketable_limit_buy("ASTC", 32, Decimal("6.37"), True)

        assert sent_request(urlopen, 0).get_header("Idempotency-key") == "key-1"
        assert sent_request(urlopen, 1).get_header("Idempotency-key") == "key-2"

    def test_retries_reuse_the_same_key(self, urlopen):
        urlopen.side_effect = [http_error(503), http_ok({"id": "o1"})]

        self.client.place_marketable_limit_buy("ASTC", 32, Decimal("6.37"), True)

        assert urlopen.call_count == 2
        assert {sent_request(urlopen, i).get_header("Idempotency-key") for i in range(2)} == {"key-1"}
        assert self.keys.call_count == 1

    def test_delete_carries_key_without_body(self, urlopen):
        urlopen.return_value = http_ok(None, status=204)

        self.client.cancel_order("o1")

        request = sent_request(urlopen)
        assert request.get_method() == "DELETE"
        assert request.get_header("Idempotency-key") == "key-1"
        assert request.data is None


@patch("tradebot_app.broker.client.urlopen")
class TestRetries:
    """Test retry and error surfacing."""

    def setup_method(self):
        self.sleep = Mock()
        self.client = BrokerClient(PARAMS, sleep=self.sleep)

    def test_503_twice_then_200(self, urlopen):
        urlopen.side_effect = [http_error(503), http_error(503), http_ok({"id": "acct"})]

        assert self.client.get_account() == {"id": "acct"}
        assert urlopen.call_count == 3
        assert [c.args[0] for c in self.sleep.call_args_list] == [2.0, 4.0]

    def test_exhausted_retries_raise_broker_error(self, urlopen):
        urlopen.side_effect = [http_error(503), http_error(503), http_error(503, b"down")]

        with pytest.raises(BrokerError) as exc_info:
            self.client.get_account()

        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "down"
        assert self.sleep.call_count == 2

    def test_client_error_not_retried(self, urlopen):
        urlopen.side_effect = [http_error(422, b'{"message":"qty must be > 0"}')]

        with pytest.raises(BrokerError) as exc_info:
            self.client.place_bracket_exit("ASTC", 0, Decimal("7"), Decimal("5"))

        assert exc_info.value.status_code == 422
        assert urlopen.call_count == 1
        self.sleep.assert_not_called()

    def test_io_failure_raises_unreachable(self, urlopen):
        urlopen.side_effect = URLError("connection refused")

        with pytest.raises(BrokerUnreachableError) as exc_info:
            self.client.get_account()

        assert exc_info.value.attempts == 3
        assert exc_info.value.recoverable
        assert urlopen.call_count == 3

    def test_truncated_body_raises_unreachable(self, urlopen):
        response = http_ok({})
        response.read.side_effect = IncompleteRead(b"{\"id\"")
        urlopen.return_value = response

        with pytest.raises(BrokerUnreachableError):
            self.client.get_account()

        assert urlopen.call_count == 3

    def test_invalid_json(self, urlopen):
        response = http_ok({})
        response.read.return_value = b"<html>"
        urlopen.return_value = response

        with pytest.raises(BrokerResponseError):
            self.client.get_account()

    def test_ping(self, urlopen):
        urlopen.return_value = http_ok({"id": "acct"})
        assert self.client.ping()

        urlopen.side_effect = URLError("down")
        assert not self.client.ping()


@patch("tradebot_app.broker.client.urlopen")
class TestEndpoints:
    """Test endpoint payloads and response mapping."""

    def setup_method(self):
        self.client = BrokerClient(PARAMS, sleep=Mock())

    def test_last_trade_price(self, urlopen):
        urlopen.return_value = http_ok({"symbol": "ASTC", "trade": {"p": 6.41}})

        assert self.client.get_last_trade_price("ASTC") == Decimal("6.41")
        assert sent_request(urlopen).full_url == "https://data.test/v2/stocks/ASTC/trades/latest"

    def test_last_trade_price_missing(self, urlopen):
        urlopen.return_value = http_ok({"symbol": "ASTC", "trade": None})

        with pytest.raises(BrokerResponseError):
            self.client.get_last_trade_price("ASTC")

    def test_last_quote(self, urlopen):
        urlopen.return_value = http_ok({"quote": {"bp": 6.35, "ap": 6.37}})

        quote = self.client.get_last_quote("ASTC")

        assert quote.bid == Decimal("6.35")
        assert quote.ask == Decimal("6.37")
        assert sent_request(urlopen).full_url == "https://data.test/v2/stocks/ASTC/quotes/latest"

    def test_marketable_limit_buy_body(self, urlopen):
        urlopen.return_value = http_ok({"id": "buy-1"})

        self.client.place_marketable_limit_buy("ASTC", 32, Decimal("6.37272"), False)

        request = sent_request(urlopen)
        assert request.full_url == "https://broker.test/v2/orders"
        assert orjson.loads(request.data) == {
            "symbol": "ASTC",
            "qty": "32",
            "side": "buy",
            "type": "limit",
            "time_in_force": "day",
            "limit_price": "6.37",
            "extended_hours": False,
        }

    def test_bracket_exit_body(self, urlopen):
        urlopen.return_value = http_ok({"id": "oco-1"})

        self.client.place_bracket_exit("PENY", 100, Decimal("0.83456"), Decimal("0.71"))

        assert orjson.loads(sent_request(urlopen).data) == {
            "symbol": "PENY",
            "qty": "100",
            "side": "sell",
            "type": "limit",
            "time_in_force": "gtc",
            "order_class": "oco",
            "take_profit": {"limit_price": "0.8346"},
            "stop_loss": {"stop_price": "0.7100"},
        }

    @pytest.mark.parametrize("status, expected", [
        ("filled", Decimal("6.40")),
        ("partially_filled", Decimal("6.40")),
        ("new", None),
        ("canceled", None),
    ])
    def test_avg_fill_price(self, urlopen, status, expected):
        urlopen.return_value = http_ok({"id": "buy-1", "status": status, "filled_avg_price": "6.40"})

        assert self.client.get_order_avg_fill_price("buy-1") == expected
        assert sent_request(urlopen).full_url == "https://broker.test/v2/orders/buy-1"

    def test_list_orders_query(self, urlopen):
        urlopen.return_value = http_ok([{"id": "o1"}])
        since = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        orders = self.client.list_orders("closed", "sell", since=since, limit=50)

        url = sent_request(urlopen).full_url
        assert orders == [{"id": "o1"}]
        assert url.startswith("https://broker.test/v2/orders?")
        for part in ("status=closed", "side=sell", "limit=50", "nested=true",
                     "after=2024-01-02T03%3A04%3A05Z"):
            assert part in url

    def test_list_orders_requires_array(self, urlopen):
        urlopen.return_value = http_ok({"orders": []})

        with pytest.raises(BrokerResponseError):
            self.client.list_orders("closed", "sell")
