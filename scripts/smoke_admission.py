#!/usr/bin/env python3
"""Smoke test for AI admission (rate limit + monthly quota) against a running backend.

Usage:
  python scripts/smoke_admission.py --base-url http://127.0.0.1:8787 --garage-id <uuid> --jwt-secret <secret>

Sends `--burst` requests to one AI feature and prints how each was admitted or denied.
Expect RATE_LIMITED once the burst exceeds AI_RATE_LIMIT_MAX_REQUESTS, or QUOTA_EXCEEDED
earlier when the garage has a monthly quota.

Environment fallbacks:
  GARAGE_BASE_URL, GARAGE_ID, JWT_SECRET, GARAGE_TOKEN
"""
from __future__ import annotations

import argparse
import os
import sys
import time
from collections import Counter
from typing import Any

import httpx
import jwt


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Garage AI admission smoke test")
    parser.add_argument("--base-url", default=os.getenv("GARAGE_BASE_URL", "http://127.0.0.1:8787"))
    parser.add_argument("--garage-id", default=os.getenv("GARAGE_ID"))
    parser.add_argument("--jwt-secret", default=os.getenv("JWT_SECRET"))
    parser.add_argument("--token", default=os.getenv("GARAGE_TOKEN"), help="Use an existing access token")
    parser.add_argument("--feature", default="copilot")
    parser.add_argument("--burst", type=int, default=11)
    parser.add_argument("--prompt", default="Smoke test: résume la journée de l'atelier")
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args()


def exit_with(message: str, code: int = 1) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(code)


def safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        return response.json()
    except ValueError:
        return {}


def mint_token(secret: str, garage_id: str) -> str:
    now = int(time.time())
    payload = {"sub": "smoke-test", "garage_id": garage_id, "role": "user", "iat": now, "exp": now + 600}
    return jwt.encode(payload, secret, algorithm="HS256")


def main() -> None:
    args = parse_args()
    token = args.token
    if not token:
        if not args.garage_id or not args.jwt_secret:
            exit_with("Provide --token, or --garage-id with --jwt-secret")
        token = mint_token(args.jwt_secret, args.garage_id)

    client = httpx.Client(
        base_url=args.base_url.rstrip("/"),
        headers={"Authorization": f"Bearer {token}"},
        timeout=60.0,
    )

    try:
        health = client.get("/health")
    except httpx.HTTPError as exc:
        exit_with(f"Health check failed: {exc}")
    if health.status_code != 200:
        exit_with(f"Health check failed: HTTP {health.status_code} {health.text}")

    quota = client.get("/ai/quota")
    if quota.status_code != 200:
        exit_with(f"Quota lookup failed: {quota.status_code} {quota.text}")
    if not args.quiet:
        print(f"Quota before burst: {quota.json()}")

    outcomes: Counter[str] = Counter()
    for i in range(1, args.burst + 1):
        response = client.post(f"/ai/{args.feature}", json={"prompt": args.prompt})
        data = safe_json(response)
        if response.status_code == 200:
            outcome = "fallback" if data.get("fallback") else "ok"
        else:
            outcome = data.get("code") or f"HTTP_{response.status_code}"
        outcomes[outcome] += 1
        if not args.quiet:
            print(f"#{i:02d} {response.status_code} {outcome} {data.get('latency_ms', '')}")

    print(dict(outcomes))
    if outcomes["RATE_LIMITED"] == 0 and outcomes["QUOTA_EXCEEDED"] == 0:
        exit_with("No request was denied; is the burst larger than AI_RATE_LIMIT_MAX_REQUESTS?")


if __name__ == "__main__":
    main()
