"""Public HTTP and WebSocket surface of the merchant relay.

Merchant clients call the QR, slip verification and B scan C endpoints, which
are forwarded to the bank. The bank calls `/payment-callback` when a payment
completes, and the callback body is pushed to every client connected on
`/ws/payments`.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from time import perf_counter
from typing import Callable
from uuid import uuid4

import httpx
from fastapi import BackgroundTasks, FastAPI, Header, Query, Request, WebSocket

from merchantrelay.common.broadcast import BroadcastChannel
from merchantrelay.common.config import RelaySettings, settings
from merchantrelay.common.logging import configure_logging, logger, trace_id_ctx
from merchantrelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
)
from merchantrelay.common.startup import log_startup_config
from merchantrelay.common.tracing import instrument_app, setup_tracing
from merchantrelay.services.relay.client import GatewayClient
from merchantrelay.services.relay.schemas import ConfirmPaymentRequest, QrCodeCreateRequest, parse_body
from merchantrelay.services.relay.service import RelayService


def create_app(
    relay_settings: RelaySettings,
    transport: httpx.AsyncBaseTransport | None = None,
    channel: BroadcastChannel | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Build the relay app around one gateway client and one broadcast channel."""

    gateway = GatewayClient(relay_settings, transport=transport)
    if channel is None:
        channel = BroadcastChannel(send_timeout_seconds=relay_settings.broadcast_send_timeout_seconds)
    service = RelayService(relay_settings, gateway, channel, clock=clock)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Close the pooled gateway connections on shutdown."""

        yield
        await gateway.aclose()

    app = FastAPI(title="Merchant Relay", lifespan=lifespan)
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency, and bind the correlation id."""

        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=relay_settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=relay_settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.post("/qrcode/create")
    async def qrcode_create(request: Request, authorization: str | None = Header(default=None)):
        """Create a C scan B QR code through the bank."""

        req = parse_body(await request.body(), QrCodeCreateRequest)
        return await service.create_qrcode(req, authorization)

    @app.post("/payment-callback")
    async def payment_callback(request: Request, background_tasks: BackgroundTasks):
        """Bank confirmation endpoint; must be registered in the merchant profile."""

        return service.accept_callback(await request.body(), background_tasks)

    @app.get("/billpayment/transactions/{trans_ref}")
    async def slip_verification(
        trans_ref: str,
        sending_bank: str | None = Query(default=None, alias="sendingBank"),
        authorization: str | None = Header(default=None),
    ):
        """Verify a payment slip by transaction reference."""

        return await service.verify_slip(trans_ref, sending_bank, authorization)

    @app.post("/bscanc/confirm")
    async def bscanc_confirm(request: Request, authorization: str | None = Header(default=None)):
        """Confirm a B scan C payment."""

        req = parse_body(await request.body(), ConfirmPaymentRequest)
        return await service.confirm_payment(req, authorization)

    @app.websocket("/ws/payments")
    async def payments_socket(websocket: WebSocket):
        """Keep a client subscribed to payment callbacks until it disconnects."""

        await websocket.accept()
        channel.subscribe(websocket)
        try:
            # Text and binary frames are keep-alives; only a disconnect matters.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("websocket_disconnected client=%s code=%s", websocket.client, message.get("code"))
                    break
        finally:
            channel.unsubscribe(websocket)

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


configure_logging(settings.service_name, settings.log_level)
setup_tracing(settings.service_name, settings.otel_exporter_otlp_endpoint)
log_startup_config(
    settings,
    [
        "scb_base_url",
        "scb_path_prefix",
        "scb_biller_id",
        "scb_api_key",
        "default_sending_bank",
        "upstream_timeout_seconds",
    ],
)
app = create_app(settings)
