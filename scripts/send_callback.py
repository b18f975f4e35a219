"""Post a bank-style payment callback to a running relay.

Useful for checking that connected WebSocket clients receive the broadcast
without going through the bank sandbox.
"""

import argparse
import json
from pathlib import Path

import httpx


SAMPLE_CALLBACK = {
    "payeeProxyId": "010556109100001",
    "payeeProxyType": "BILLERID",
    "payeeAccountNumber": "0987654321",
    "payerAccountNumber": "0123456789",
    "payerName": "TEST PAYER",
    "sendingBankCode": "014",
    "receivingBankCode": "014",
    "amount": "100.00",
    "transactionId": "T1",
    "transactionDateandTime": "2024-01-02T03:04:05.000+07:00",
    "billPaymentRef1": "1234567890",
    "billPaymentRef2": "1234567890",
    "billPaymentRef3": "ABC123",
    "currencyCode": "764",
    "channelCode": "PMH",
    "transactionType": "Domestic Transfers",
}


def send(base_url: str, payload: dict) -> int:
    """Send one callback and return the relay's status code."""

    with httpx.Client(timeout=10.0) as client:
        resp = client.post(f"{base_url.rstrip('/')}/payment-callback", json=payload)
    return resp.status_code


def main() -> None:
    """Parse CLI args and post one callback payload."""

    parser = argparse.ArgumentParser(description="Post a payment callback to the relay.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    args = parser.parse_args()

    if args.json_inline and args.json_file:
        raise SystemExit("Provide at most one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    elif args.json_file:
        payload = json.loads(Path(args.json_file).read_text())
    else:
        payload = SAMPLE_CALLBACK

    status_code = send(args.base_url, payload)
    print(f"Relay answered status={status_code}")


if __name__ == "__main__":
    main()
