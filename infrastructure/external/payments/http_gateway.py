"""
Remote gateway adapter speaking JSON over HTTP.

POST {base_url}/payments/{method} with the request body; the gateway answers
``{"status": ..., "authorization_code": ..., "processed_amount": ..., "message": ...}``.
5xx and 429 answers are retried, other non-2xx answers fail immediately.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from application.dtos.payments import GatewayOutcome, PaymentRequest
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import GatewayError, GatewayRecoverableError


class HttpPaymentGateway(BasePaymentClient):
    provider = "http"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        super().__init__(
            base_url=base_url,
            headers=headers,
            timeouts=timeouts,
            retry=retry,
            transport=transport,
        )

    async def _post(self, path: str, request: PaymentRequest) -> GatewayOutcome:
        payload = request.model_dump(mode="json")

        async def _do() -> httpx.Response:
            async with self.client() as http:
                resp = await http.post(
                    path,
                    json=payload,
                    headers={"Idempotency-Key": request.transaction_id},
                )
            if resp.status_code >= 500 or resp.status_code == 429:
                raise GatewayRecoverableError(
                    f"Gateway unavailable ({resp.status_code})",
                    provider=self.provider,
                    status_code=resp.status_code,
                )
            return resp

        self._log("gateway_request", path=path, transaction_id=request.transaction_id)
        resp = await self._retry(_do)
        if resp.status_code >= 400:
            raise GatewayError(
                f"Gateway rejected request ({resp.status_code})",
                provider=self.provider,
                status_code=resp.status_code,
            )
        try:
            outcome = GatewayOutcome.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise GatewayError("Malformed gateway response", provider=self.provider) from exc
        self._log(
            "gateway_response",
            path=path,
            transaction_id=request.transaction_id,
            status=outcome.status.value,
        )
        return outcome

    async def process_credit_card(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._post("/payments/credit-card", request)

    async def process_debit(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._post("/payments/debit", request)

    async def process_pix(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._post("/payments/pix", request)

    async def process_boleto(self, request: PaymentRequest) -> GatewayOutcome:
        return await self._post("/payments/boleto", request)
