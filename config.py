# -*- coding: utf-8 -*-

import os


def _env_int(name: str, default: int) -> int:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "")).strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "off", "no"}


# Backend API
TEXTIFY_API_BASE = str(os.getenv("TEXTIFY_API_BASE", "http://localhost:8080")).strip().rstrip("/") or "http://localhost:8080"
TEXTIFY_API_PREFIX = "/api/v1/jobs"
TEXTIFY_HTTP_TIMEOUT_S = max(1, _env_int("TEXTIFY_HTTP_TIMEOUT_S", 30))

# Fixed polling cadence; read once per controller and shared by every job.
TEXTIFY_POLL_INTERVAL_S = max(0.05, _env_float("TEXTIFY_POLL_INTERVAL_S", 3.0))

# Durable client state (caller identity)
TEXTIFY_STATE_PATH = str(os.getenv("TEXTIFY_STATE_PATH", ".textify/client_state.json")).strip() or ".textify/client_state.json"
IDENTITY_STORAGE_KEY = "textify-user-id"

# Presentation bridge
TEXTIFY_UPLOAD_MAX_BYTES = max(1, _env_int("TEXTIFY_UPLOAD_MAX_BYTES", 50 * 1024 * 1024))
TEXTIFY_CORS_ENABLED = _env_bool("TEXTIFY_CORS_ENABLED", True)
