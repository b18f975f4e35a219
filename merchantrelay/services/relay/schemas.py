"""Request schemas for the relay endpoints.

Values are forwarded to the bank as received, whatever their JSON type;
format checks (for example `ref3` being `[A-Z0-9]{1,20}`) are left to the bank.
"""

import json
from decimal import Decimal
from typing import Any, TypeVar

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError


ModelT = TypeVar("ModelT", bound=BaseModel)


class QrCodeCreateRequest(BaseModel):
    """Payload accepted by `POST /qrcode/create`."""

    amount: Any = None
    ref3: Any = None


class ConfirmPaymentRequest(BaseModel):
    """Payload accepted by `POST /bscanc/confirm` (B scan C)."""

    model_config = ConfigDict(populate_by_name=True)

    qr_data: Any = Field(default=None, alias="qrData")
    transaction_amount: Any = Field(default=None, alias="transactionAmount")


def parse_body(raw_body: bytes, model: type[ModelT]) -> ModelT:
    """Parse a JSON request body into `model`, keeping decimals exact.

    Non-integer numbers become `Decimal` so amounts reach the bank with every
    digit. Errors are raised as FastAPI's 422 validation error.
    """

    try:
        payload = json.loads(raw_body, parse_float=Decimal)
    except ValueError as exc:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        ) from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = [{**error, "loc": ("body", *error["loc"])} for error in exc.errors(include_url=False)]
        raise RequestValidationError(errors) from exc
