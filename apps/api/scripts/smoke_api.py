from __future__ import annotations

import os
import sys
from datetime import UTC, datetime, timedelta

import httpx


def _assert_ok(response: httpx.Response, *, label: str) -> None:
    if response.status_code >= 400:
        raise RuntimeError(f"{label} failed: HTTP {response.status_code} body={response.text}")


def main() -> None:
    base_url = os.environ.get("API_BASE_URL", "http://localhost:8000")
    ttl_minutes = int(os.environ.get("SMOKE_TTL_MINUTES", "5"))

    with httpx.Client(base_url=base_url, timeout=20.0) as client:
        health = client.get("/healthz")
        _assert_ok(health, label="GET /healthz")
        print("ok: GET /healthz")

        ready = client.get("/readyz")
        _assert_ok(ready, label="GET /readyz")
        print("ok: GET /readyz")

        expires_at = datetime.now(UTC) + timedelta(minutes=ttl_minutes)
        created = client.post(
            "/api/sessions",
            json={"expiresAt": expires_at.isoformat(), "payload": {"source": "smoke"}},
        )
        _assert_ok(created, label="POST /api/sessions")
        code = created.json()["code"]
        print(f"ok: POST /api/sessions code={code}")

        lookup = client.get(f"/api/sessions/{code.lower()}")
        _assert_ok(lookup, label=f"GET /api/sessions/{code}")
        if lookup.json()["payload"] != {"source": "smoke"}:
            raise RuntimeError(f"payload mismatch for {code}: {lookup.text}")
        print(f"ok: GET /api/sessions/{code}")

        print(f"smoke complete: code={code} expiresAt={created.json()['expiresAt']}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # noqa: BLE001
        print(f"smoke failed: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
