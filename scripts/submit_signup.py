#!/usr/bin/env python3
"""Post a sample signup to a deployed endpoint and print the response.

Usage:
    python scripts/submit_signup.py --server http://localhost:8888 --email jane@example.org
    python scripts/submit_signup.py --server https://veteranverify.net --origin https://veteranverify.net --json
    python scripts/submit_signup.py --server https://veteranverify.net --token $FORM_WEBHOOK_SECRET --webhook

Environment variables:
    SIGNUP_SERVER   - Default for --server (default: http://localhost:8888)
"""

from __future__ import annotations

import argparse
import json
import os
import sys

import httpx

DEFAULT_SERVER = os.environ.get("SIGNUP_SERVER", "http://localhost:8888").rstrip("/")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Submit a test signup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--server", default=DEFAULT_SERVER, help="Base URL of the deployment")
    parser.add_argument("--path", default="/api/signup", help="Endpoint path (default: /api/signup)")
    parser.add_argument("--origin", default="http://localhost:8888", help="Origin header to send")
    parser.add_argument("--token", default="", help="Webhook secret, sent as ?token=")
    parser.add_argument("--email", default="smoke-test@example.org")
    parser.add_argument("--name", default="Smoke Test")
    parser.add_argument("--role", action="append", default=[], help="Repeatable; sent as role[]")
    parser.add_argument("--organization", default="")
    parser.add_argument("--json", action="store_true", help="Send application/json instead of a form post")
    parser.add_argument("--webhook", action="store_true", help="Wrap the JSON body as {payload: {data: ...}}")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    url = f"{args.server.rstrip('/')}{args.path}"
    params = {"token": args.token} if args.token else None
    headers = {"Origin": args.origin} if args.origin and not args.token else {}

    fields = {"name": args.name, "email": args.email, "organization": args.organization, "updates": "yes"}

    with httpx.Client(timeout=20.0) as client:
        if args.json or args.webhook:
            body: dict = {**fields, "role": args.role}
            if args.webhook:
                body = {"payload": {"data": body}}
            resp = client.post(url, params=params, json=body, headers=headers)
        else:
            form = {**fields, "role[]": args.role}
            resp = client.post(url, params=params, data=form, headers=headers)

    print(f"HTTP {resp.status_code}")
    for name in ("access-control-allow-origin", "vary"):
        if name in resp.headers:
            print(f"  {name}: {resp.headers[name]}")
    if resp.content:
        try:
            print(json.dumps(resp.json(), indent=2))
        except ValueError:
            print(resp.text[:500])
    return 0 if resp.status_code in (200, 204) else 1


if __name__ == "__main__":
    sys.exit(main())
