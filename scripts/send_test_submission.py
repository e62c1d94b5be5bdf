#!/usr/bin/env python3
"""
Dev helper: send a test contact-form submission to the local backend.

Builds the same JSON body the website's contact form posts, sets the Origin
header the browser would send, and POST-s it to the /submit endpoint.

Usage
-----
# Basic: sample submission from the Vite dev origin, targeting localhost:8000
python scripts/send_test_submission.py

# Include the optional phone and preferred-date fields
python scripts/send_test_submission.py --phone "+34 600 123 456" --date "lunes, 3 de marzo de 2026"

# Check origin enforcement with a disallowed origin
python scripts/send_test_submission.py --origin https://evil.example

# Pretend to be a specific client IP (exercises the rate limiter)
python scripts/send_test_submission.py --ip 203.0.113.7

# Target a different backend URL
python scripts/send_test_submission.py --url http://staging.example.com
"""

import argparse
import json
import sys
import textwrap

import httpx


# ---------------------------------------------------------------------------
# Payload builder
# ---------------------------------------------------------------------------

def _build_payload(
    name: str,
    email: str,
    message: str,
    phone: str | None,
    date: str | None,
) -> dict:
    """Build the contact form body; optional fields are left out when unset."""
    payload = {"name": name, "email": email, "message": message}
    if phone:
        payload["phone"] = phone
    if date:
        payload["date"] = date
    return payload


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    print(f"Access-Control-Allow-Origin: {response.headers.get('access-control-allow-origin')}")
    try:
        body = response.json()
        print(json.dumps(body, indent=2, ensure_ascii=False))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description=textwrap.dedent("""\
            Send a test contact-form submission to the Consultoría Legal backend.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --phone "+34 600 123 456"
              python scripts/send_test_submission.py --origin https://evil.example
              python scripts/send_test_submission.py --url http://localhost:8000
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--origin",
        default="http://localhost:8080",
        help="Origin header to send (default: http://localhost:8080)",
    )
    parser.add_argument(
        "--ip",
        default=None,
        metavar="IP",
        help="Value for X-Forwarded-For, to simulate a specific client IP.",
    )
    parser.add_argument("--name", default="Ana Pérez", help='Visitor name (default: "Ana Pérez")')
    parser.add_argument(
        "--email",
        default="ana@example.com",
        help="Visitor email address (default: ana@example.com)",
    )
    parser.add_argument(
        "--message",
        default="Consulta laboral: despido sin preaviso.",
        help="Message text.",
    )
    parser.add_argument("--phone", default=None, help="Optional phone number.")
    parser.add_argument("--date", default=None, help="Optional preferred date label.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    payload = _build_payload(
        name=args.name,
        email=args.email,
        message=args.message,
        phone=args.phone,
        date=args.date,
    )
    endpoint = f"{args.url.rstrip('/')}/submit"

    print(f"Endpoint : {endpoint}")
    print(f"Origin   : {args.origin}")
    print(f"Client IP: {args.ip or '(not set)'}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    headers = {"Origin": args.origin}
    if args.ip:
        headers["X-Forwarded-For"] = args.ip

    try:
        response = httpx.post(endpoint, json=payload, headers=headers, timeout=30)
        _print_response(response)
        return 0 if response.status_code == 200 else 1
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn consultoria.main:app --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
