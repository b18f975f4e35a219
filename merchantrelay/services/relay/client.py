"""HTTP client bound to the bank gateway (SCB Open API)."""

import json
from decimal import Decimal
from time import perf_counter
from uuid import uuid4

import httpx

from merchantrelay.common.config import RelaySettings
from merchantrelay.common.logging import logger, request_uid_ctx
from merchantrelay.common.metrics import upstream_latency_seconds, upstream_requests_total


def encode_json(body: dict) -> bytes:
    """JSON-encode `body`, writing `Decimal` values as exact JSON numbers."""

    numbers: dict[str, str] = {}

    def default(value):
        if isinstance(value, Decimal):
            token = f"__decimal_{uuid4().hex}__"
            numbers[f'"{token}"'] = str(value)
            return token
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    text = json.dumps(body, default=default)
    for token, number in numbers.items():
        text = text.replace(token, number, 1)
    return text.encode("utf-8")


class GatewayClient:
    """Issues outbound calls to the bank with per-call correlation headers.

    Every call carries a fresh `requestUId` and the caller's `authorization`
    header. Transport failures surface as `httpx.RequestError`; any HTTP
    status the bank answers with is returned as a normal response.
    """

    def __init__(self, settings: RelaySettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        headers = {"accept-language": settings.scb_accept_language}
        if settings.scb_api_key:
            headers["resourceOwnerId"] = settings.scb_api_key
        self._client = httpx.AsyncClient(
            base_url=settings.scb_base_url,
            headers=headers,
            timeout=settings.upstream_timeout_seconds,
            transport=transport,
        )

    def path(self, suffix: str) -> str:
        return f"{self.settings.scb_path_prefix.rstrip('/')}/{suffix.lstrip('/')}"

    def _headers(self, authorization: str | None, has_body: bool = False) -> dict[str, str]:
        request_uid = str(uuid4())
        request_uid_ctx.set(request_uid)
        headers = {"requestUId": request_uid}
        if has_body:
            headers["content-type"] = "application/json"
        if authorization is not None:
            headers["authorization"] = authorization
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        authorization: str | None,
        body: dict | None = None,
        params: dict | None = None,
        route: str | None = None,
    ) -> httpx.Response:
        """Send one call to `endpoint` (relative to the path prefix).

        `route` is the metrics label, for endpoints that embed identifiers.
        """

        label = route or endpoint
        url = self.path(endpoint)
        logger.info("upstream_request method=%s url=%s", method, url)
        start = perf_counter()
        try:
            resp = await self._client.request(
                method,
                url,
                content=encode_json(body) if body is not None else None,
                params=params,
                headers=self._headers(authorization, has_body=body is not None),
            )
        except httpx.RequestError as exc:
            upstream_requests_total.labels(endpoint=label, outcome=type(exc).__name__).inc()
            logger.error("upstream_transport_error method=%s url=%s error=%r", method, url, exc)
            raise
        finally:
            upstream_latency_seconds.labels(endpoint=label).observe(max(0.0, perf_counter() - start))
        upstream_requests_total.labels(endpoint=label, outcome=str(resp.status_code)).inc()
        logger.info("upstream_response method=%s url=%s status=%s", method, url, resp.status_code)
        return resp

    async def post(self, endpoint: str, authorization: str | None, body: dict) -> httpx.Response:
        return await self.request("POST", endpoint, authorization, body=body)

    async def get(
        self,
        endpoint: str,
        authorization: str | None,
        params: dict | None = None,
        route: str | None = None,
    ) -> httpx.Response:
        return await self.request("GET", endpoint, authorization, params=params, route=route)

    async def aclose(self) -> None:
        await self._client.aclose()
