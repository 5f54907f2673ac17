"""
Brokerage REST client.

Stateless facade over the trading (account/orders) and market-data
endpoints. All requests carry the two credential headers; every
non-GET request also carries an ``Idempotency-Key`` that is generated
once per logical call and reused by that call's retries so the server
can discard duplicates.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from urllib.error import HTTPError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

import orjson
import structlog

from ..config.defaults import BrokerParams
from ..errors import (
    BrokerError,
    BrokerResponseError,
    BrokerUnreachableError,
    ConfigurationError,
)
from .models import Quote, decimal_or_none, format_price
from .retry import RetryPolicy

logger = structlog.get_logger(__name__)

FILLED_STATUSES = ("filled", "partially_filled")


@dataclass(frozen=True)
class HttpResponse:
    """Raw HTTP response as seen by the retry policy."""
    status: int
    body: str


class BrokerClient:
    """Retrying, idempotent client for the brokerage REST API."""

    def __init__(
        self,
        params: BrokerParams,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        idempotency_key_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        missing = [name for name in ("api_key_id", "api_secret_key", "base_url", "data_url")
                   if not getattr(params, name)]
        if missing:
            raise ConfigurationError(
                f"Broker is not fully configured, missing: {', '.join(missing)}",
                field=missing[0]
            )

        self.params = params
        self.base_url = params.base_url.rstrip("/")
        self.data_url = params.data_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy.linear(
            max_retries=params.max_retries,
            unit_seconds=params.backoff_unit_seconds
        )
        self._sleep = sleep
        self._new_idempotency_key = idempotency_key_factory

    # ---- Account ----

    def get_account(self) -> dict[str, Any]:
        """Fetch the trading account."""
        return self._request("GET", f"{self.base_url}/v2/account")

    def ping(self) -> bool:
        """Check that the account endpoint is reachable with our credentials."""
        try:
            account = self.get_account()
        except (BrokerError, BrokerUnreachableError) as e:
            logger.warning("Broker health check failed", error=str(e))
            return False
        logger.info("Broker reachable", account_id=account.get("id", "unknown"))
        return True

    # ---- Market data ----

    def get_last_trade_price(self, symbol: str) -> Decimal:
        """Last trade price for ``symbol``."""
        url = f"{self.data_url}/stocks/{quote(symbol)}/trades/latest"
        payload = self._request("GET", url)
        price = decimal_or_none((payload.get("trade") or {}).get("p"))
        if price is None:
            raise BrokerResponseError(
                f"No latest trade price for: {symbol}",
                status_code=200, body=str(payload)[:500], method="GET", url=url
            )
        return price

    def get_last_quote(self, symbol: str) -> Quote:
        """Latest best bid/ask for ``symbol``."""
        url = f"{self.data_url}/stocks/{quote(symbol)}/quotes/latest"
        payload = self._request("GET", url)
        data = payload.get("quote") or {}
        bid = decimal_or_none(data.get("bp"))
        ask = decimal_or_none(data.get("ap"))
        if bid is None or ask is None:
            raise BrokerResponseError(
                f"No quote for: {symbol}",
                status_code=200, body=str(payload)[:500], method="GET", url=url
            )
        return Quote(bid=bid, ask=ask)

    # ---- Orders ----

    def place_marketable_limit_buy(
        self,
        symbol: str,
        qty: int,
        limit_price: Decimal,
        extended_hours: bool
    ) -> dict[str, Any]:
        """Day limit buy priced to fill immediately."""
        body = {
            "symbol": symbol,
            "qty": str(qty),
            "side": "buy",
            "type": "limit",
            "time_in_force": "day",
            "limit_price": format_price(limit_price),
            "extended_hours": extended_hours,
        }
        return self._request("POST", f"{self.base_url}/v2/orders", body)

    def place_bracket_exit(
        self,
        symbol: str,
        qty: int,
        take_profit_price: Decimal,
        stop_price: Decimal
    ) -> dict[str, Any]:
        """One-cancels-other sell: take-profit limit paired with a stop-loss stop."""
        body = {
            "symbol": symbol,
            "qty": str(qty),
            "side": "sell",
            "type": "limit",
            "time_in_force": "gtc",
            "order_class": "oco",
            "take_profit": {"limit_price": format_price(take_profit_price)},
            "stop_loss": {"stop_price": format_price(stop_price)},
        }
        return self._request("POST", f"{self.base_url}/v2/orders", body)

    def cancel_order(self, order_id: str) -> None:
        self._request("DELETE", f"{self.base_url}/v2/orders/{quote(order_id)}")

    def get_order(self, order_id: str) -> dict[str, Any]:
        return self._request("GET", f"{self.base_url}/v2/orders/{quote(order_id)}")

    def get_order_avg_fill_price(self, order_id: str) -> Optional[Decimal]:
        """Average fill price, or None unless the order is (partially) filled."""
        order = self.get_order(order_id)
        status = str(order.get("status") or "").lower()
        if status not in FILLED_STATUSES:
            return None
        return decimal_or_none(order.get("filled_avg_price"))

    def list_orders(
        self,
        status: str,
        side: str,
        since: Optional[datetime] = None,
        limit: int = 100
    ) -> list[dict[str, Any]]:
        """List orders filtered by status/side, newer than ``since``."""
        query = {
            "status": status,
            "side": side,
            "limit": limit,
            "nested": "true",
        }
        if since is not None:
            query["after"] = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        payload = self._request("GET", f"{self.base_url}/v2/orders?{urlencode(query)}")
        if not isinstance(payload, list):
            raise BrokerResponseError(
                "Order listing is not a JSON array",
                status_code=200, body=str(payload)[:500], method="GET"
            )
        return payload

    # ---- Transport ----

    def _headers(self, method: str) -> dict[str, str]:
        headers = {
            "APCA-API-KEY-ID": self.params.api_key_id,
            "APCA-API-SECRET-KEY": self.params.api_secret_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "tradebot-app/1.0",
        }
        if method != "GET":
            headers["Idempotency-Key"] = self._new_idempotency_key()
        return headers

    def _build_request(self, method: str, url: str, body: Optional[dict[str, Any]]) -> Request:
        data = None
        if method not in ("GET", "DELETE"):
            data = orjson.dumps(body if body is not None else {})
        return Request(url, data=data, headers=self._headers(method), method=method)

    def _send_once(self, request: Request) -> HttpResponse:
        try:
            with urlopen(request, timeout=self.params.timeout_seconds) as response:
                return HttpResponse(response.getcode(), response.read().decode("utf-8"))
        except HTTPError as e:
            # urllib raises for non-2xx; the retry policy wants the status instead.
            body = e.read().decode("utf-8", errors="replace")
            return HttpResponse(e.code, body)

    def _request(self, method: str, url: str, body: Optional[dict[str, Any]] = None) -> Any:
        request = self._build_request(method, url, body)
        description = f"{method} {url}"

        try:
            response = self.retry_policy.execute(
                lambda: self._send_once(request),
                status_of=lambda r: r.status,
                sleep=self._sleep,
                description=description
            )
        except self.retry_policy.transient_errors as e:
            logger.error("Broker unreachable", request=description, error=str(e))
            raise BrokerUnreachableError(
                f"Broker unreachable: {description}: {e}",
                method=method,
                url=url,
                attempts=self.retry_policy.max_attempts
            ) from e

        if not 200 <= response.status < 300:
            logger.error(
                "Broker request failed",
                request=description,
                status=response.status,
                body=response.body[:200]
            )
            raise BrokerError(
                f"Broker HTTP {response.status} -> {response.body}",
                status_code=response.status,
                body=response.body,
                method=method,
                url=url
            )

        if not response.body.strip():
            return {}
        try:
            return orjson.loads(response.body)
        except orjson.JSONDecodeError as e:
            raise BrokerResponseError(
                f"Broker returned invalid JSON: {e}",
                status_code=response.status,
                body=response.body,
                method=method,
                url=url
            ) from e
