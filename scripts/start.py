#!/usr/bin/env python3
"""
Container entrypoint for FRED.

Migrates and seeds the database (see scripts/release.py), then replaces this
process with gunicorn serving `app.wsgi:app`.

Environment:
  PORT              listen port (default 8080)
  WEB_CONCURRENCY   gunicorn worker count (default 2)
  SKIP_RELEASE      set to 1 when migrations run as a separate deploy step

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    value = int(raw)
    if value < low or value > high:
        raise ValueError(f"{name}={raw} is outside {low}-{high}")
    return value


def gunicorn_argv(port: int, workers: int) -> list[str]:
    # --preload imports the app once; create_app disposes the engine in each forked worker.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = _env_int("PORT", 8080, low=1, high=65535)
        workers = _env_int("WEB_CONCURRENCY", 2, low=1, high=32)
    except ValueError as e:
        print(f"ERROR: {e}", flush=True)
        sys.exit(1)

    if (os.environ.get("SKIP_RELEASE") or "").strip() not in ("1", "true", "yes"):
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"FRED release failed, not starting web workers: {e}", flush=True)
            sys.exit(1)

    print(f"FRED listening on 0.0.0.0:{port} with {workers} worker(s); probe /healthz", flush=True)
    os.execvp("gunicorn", gunicorn_argv(port, workers))


if __name__ == "__main__":
    main()
