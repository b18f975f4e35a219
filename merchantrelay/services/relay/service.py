"""Request handlers relaying merchant calls to the bank gateway.

Further reading:
- https://developer.scb/#/documents/documentation/qr-payment/thai-qr.html
- https://developer.scb/#/documents/api-reference-index/qr-payments/post-qrcode-create.html
- https://developer.scb/#/documents/api-reference-index/qr-payments/get-billpayment-transactions.html
- https://developer.scb/#/documents/api-reference-index/qr-payments/post-bscanc-confirm-payment.html
"""

import json
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import httpx
from fastapi import BackgroundTasks
from fastapi.responses import JSONResponse, Response

from merchantrelay.common.broadcast import BroadcastChannel
from merchantrelay.common.config import RelaySettings
from merchantrelay.common.logging import logger
from merchantrelay.common.metrics import payment_callbacks_total
from merchantrelay.services.relay.client import GatewayClient
from merchantrelay.services.relay.schemas import ConfirmPaymentRequest, QrCodeCreateRequest


QRCODE_CREATE_ENDPOINT = "payment/qrcode/create"
BILLPAYMENT_TRANSACTIONS_ENDPOINT = "payment/billpayment/transactions"
RTP_CONFIRM_ENDPOINT = "payment/merchant/rtp/confirm"

QR_TYPE = "PP"
PP_TYPE = "BILLERID"
QR_REF1 = "1234567890"
QR_REF2 = "1234567890"
CONFIRM_REFERENCE1 = "ABCDEFGHI"
TRANSACTION_ID_SUFFIX = "ABCDEF"
TRANSACTION_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def build_transaction_id(biller_id: str, now: datetime) -> str:
    """Biller id + YYYYMMDDHHmmss + fixed suffix.

    Nothing is stored, so two requests within the same second get the same id.
    """

    return f"{biller_id}{now.strftime(TRANSACTION_TIMESTAMP_FORMAT)}{TRANSACTION_ID_SUFFIX}"


def build_partner_transaction_id(biller_id: str, now: datetime) -> str:
    return f"{biller_id}{build_transaction_id(biller_id, now)}"


def passthrough(resp: httpx.Response) -> Response:
    """Forward the bank's status code and body unchanged."""

    return Response(
        content=resp.content,
        status_code=resp.status_code,
        media_type=resp.headers.get("content-type", "application/json"),
    )


def gateway_failure(exc: httpx.RequestError) -> JSONResponse:
    """Fallback for calls that never got a response from the bank."""

    if isinstance(exc, httpx.TimeoutException):
        status_code, description = 504, "Upstream gateway timed out"
    else:
        status_code, description = 502, "Upstream gateway unavailable"
    return JSONResponse(
        status_code=status_code,
        content={"status": {"code": status_code, "description": description}, "data": None},
    )


class RelayService:
    """Maps each inbound merchant request to one bank call (or one broadcast)."""

    def __init__(
        self,
        settings: RelaySettings,
        gateway: GatewayClient,
        channel: BroadcastChannel,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings
        self.gateway = gateway
        self.channel = channel
        self.clock = clock

    async def _relay(self, call) -> Response:
        # Anything other than a transport error goes to the framework's fault path.
        try:
            resp = await call
        except httpx.RequestError as exc:
            return gateway_failure(exc)
        return passthrough(resp)

    async def create_qrcode(self, req: QrCodeCreateRequest, authorization: str | None) -> Response:
        """Create a Thai QR (C scan B) for the configured biller."""

        body = {
            "qrType": QR_TYPE,
            "ppType": PP_TYPE,
            "ppId": self.settings.scb_biller_id,
            "amount": req.amount,
            "ref1": QR_REF1,
            "ref2": QR_REF2,
            "ref3": req.ref3,
        }
        return await self._relay(self.gateway.post(QRCODE_CREATE_ENDPOINT, authorization, body=body))

    async def verify_slip(self, trans_ref: str, sending_bank: str | None, authorization: str | None) -> Response:
        """Look up a bill payment transaction by its reference."""

        params = {"sendingBank": sending_bank or self.settings.default_sending_bank}
        endpoint = f"{BILLPAYMENT_TRANSACTIONS_ENDPOINT}/{quote(trans_ref, safe='')}"
        call = self.gateway.get(endpoint, authorization, params=params, route=BILLPAYMENT_TRANSACTIONS_ENDPOINT)
        return await self._relay(call)

    async def confirm_payment(self, req: ConfirmPaymentRequest, authorization: str | None) -> Response:
        """Confirm a B scan C payment from a customer's QR."""

        biller_id = self.settings.scb_biller_id
        partner_transaction_id = build_partner_transaction_id(biller_id, self.clock())
        logger.info("confirm_payment partner_transaction_id=%s", partner_transaction_id)
        body = {
            "qrData": req.qr_data,
            "payeeBillerId": biller_id,
            "transactionAmount": req.transaction_amount,
            "reference1": CONFIRM_REFERENCE1,
            "partnerTransactionId": partner_transaction_id,
        }
        return await self._relay(self.gateway.post(RTP_CONFIRM_ENDPOINT, authorization, body=body))

    def accept_callback(self, raw_body: bytes, background_tasks: BackgroundTasks) -> Response:
        """Acknowledge a bank payment callback and schedule its broadcast.

        The bank times out slow confirmations, so the empty response goes out
        first and the broadcast runs as a background task after it is sent.
        """

        payment_callbacks_total.inc()
        try:
            payload: Any = json.loads(raw_body)
        except ValueError as exc:
            logger.warning("payment_callback_unparseable error=%s", exc)
            return Response(status_code=200)
        background_tasks.add_task(self.channel.publish, payload)
        return Response(status_code=200)
