from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FulfillmentResponse:
    accepted: bool
    report_url: Optional[str] = None
    jwt: Optional[str] = None
    status_code: Optional[int] = None


class FactoryClient:
    """Submits persisted orders to the pizza factory.

    One synchronous POST per order, no retry. Whatever goes wrong (non-2xx,
    an undecodable body, a transport error) comes back as
    ``accepted=False`` so the caller always has an outcome to record.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def submit(self, order: Dict[str, Any], diner: Dict[str, Any]) -> FulfillmentResponse:
        if not self.base_url:
            logger.error("[FACTORY] FACTORY_URL is not configured; order_id=%s not submitted", order.get("id"))
            return FulfillmentResponse(accepted=False)

        url = f"{self.base_url}/api/order"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {"diner": diner, "order": order}

        try:
            with self._client() as client:
                r = client.post(url, headers=headers, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("[FACTORY] request failed order_id=%s error=%s", order.get("id"), exc)
            return FulfillmentResponse(accepted=False)

        try:
            body = r.json()
        except ValueError:
            body = None
        decoded = isinstance(body, dict)
        if not decoded:
            body = {}

        report_url = body.get("reportUrl")
        if 200 <= r.status_code < 300 and decoded:
            return FulfillmentResponse(
                accepted=True,
                report_url=report_url,
                jwt=body.get("jwt"),
                status_code=r.status_code,
            )

        logger.warning(
            "[FACTORY] order rejected order_id=%s status=%s report_url=%s",
            order.get("id"),
            r.status_code,
            report_url,
        )
        return FulfillmentResponse(accepted=False, report_url=report_url, status_code=r.status_code)
