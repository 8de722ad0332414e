import json
from typing import Any

import httpx

SERVICE_ACCOUNT_FIELDS = ("client_email", "private_key")


def fetch_vault_secret(*, addr: str, token: str, mount: str, path: str) -> dict[str, str]:
    url = f"{addr.rstrip('/')}/v1/{mount}/data/{path.lstrip('/')}"
    headers = {"X-Vault-Token": token}
    with httpx.Client(timeout=5.0) as client:
        resp = client.get(url, headers=headers)
        resp.raise_for_status()
        payload = resp.json()
    return payload.get("data", {}).get("data", {}) or {}


def parse_service_account(raw: str | None) -> dict[str, Any]:
    """Decode a Google service-account JSON blob taken from the environment.

    Private keys pasted into env files usually carry literal ``\\n`` sequences
    instead of newlines; those are restored here.
    """
    if not raw:
        raise ValueError("Google credentials are not configured")
    info = json.loads(raw)
    if not isinstance(info, dict):
        raise ValueError("Google credentials must be a JSON object")
    missing = [name for name in SERVICE_ACCOUNT_FIELDS if not info.get(name)]
    if missing:
        raise ValueError(f"Google credentials missing: {', '.join(missing)}")
    info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info
