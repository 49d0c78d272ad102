#!/usr/bin/env python3
"""Smoke test: post a sample LendSaaS event to a running sync service.

Usage:
    python scripts/send_test_event.py \
        --base-url http://localhost:3000 \
        --deal-id D100 --borrower Acme --amount 5000 [--performing]

Checks the root banner, then posts the event to /webhook/lendsaas and
prints the response. Exit code 0 if both calls succeed, 1 otherwise.
"""

import argparse
import json
import sys
from typing import Tuple

import httpx

TIMEOUT = 60.0  # Pipedrive retries can take up to ~7s per call


def check_banner(base_url: str) -> Tuple[bool, str]:
    """Verify GET / returns HTTP 200 with the plain-text banner."""
    try:
        response = httpx.get(base_url.rstrip("/") + "/", timeout=TIMEOUT)
        if response.status_code == 200:
            return True, response.text.strip()
        return False, f"HTTP {response.status_code}"
    except httpx.TimeoutException:
        return False, "Request timed out"
    except httpx.ConnectError as exc:
        return False, f"Connection failed: {exc}"
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"


def send_event(base_url: str, event: dict) -> Tuple[bool, str]:
    """POST the event and report the sync outcome."""
    url = base_url.rstrip("/") + "/webhook/lendsaas"
    try:
        response = httpx.post(url, json=event, timeout=TIMEOUT)
    except httpx.TimeoutException:
        return False, "Request timed out"
    except httpx.ConnectError as exc:
        return False, f"Connection failed: {exc}"
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"

    try:
        body = response.json()
    except ValueError:
        return False, f"HTTP {response.status_code}, non-JSON body"

    detail = f"HTTP {response.status_code} {json.dumps(body)}"
    return response.status_code == 200 and body.get("success") is True, detail


def build_event(args: argparse.Namespace) -> dict:
    event = {"DealId": args.deal_id, "Amount": args.amount}
    if args.borrower:
        event["BorrowerName"] = args.borrower
    if args.performing:
        event["PaymentStatus"] = "Performing"
    return event


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a sample LendSaaS webhook event")
    parser.add_argument("--base-url", default="http://localhost:3000", help="Service base URL")
    parser.add_argument("--deal-id", required=True, help="LendSaaS DealId")
    parser.add_argument("--borrower", default="", help="BorrowerName")
    parser.add_argument("--amount", type=float, default=0, help="Amount")
    parser.add_argument(
        "--performing",
        action="store_true",
        help="Set PaymentStatus=Performing (moves the deal to Funded)",
    )
    args = parser.parse_args()

    results = []

    passed, detail = check_banner(args.base_url)
    results.append(("GET /", passed, detail))

    passed, detail = send_event(args.base_url, build_event(args))
    results.append(("POST /webhook/lendsaas", passed, detail))

    print()
    for name, ok, info in results:
        print(f"{name:<25} {'PASS' if ok else 'FAIL':<6} {info}")
    print()

    sys.exit(0 if all(ok for _, ok, _ in results) else 1)


if __name__ == "__main__":
    main()
