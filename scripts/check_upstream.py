#!/usr/bin/env python3
"""
Ping the configured Apps Script backend.

Reads the same environment as the portal (``APPS_SCRIPT_URL``,
``APPS_SCRIPT_TOKEN``) unless overridden on the command line, prints a JSON
summary and exits with status 1 when the backend is unreachable or
unconfigured.
"""

import argparse
import asyncio
import json
import sys
import time

from shared.config import get_config
from shared.errors import PortalException
from shared.logging import configure_logging
from service_portal.app.adapters.apps_script_client import AppsScriptClient


async def check(url: str, token: str, action: str) -> dict:
    """Call ``action`` once and return the outcome."""
    client = AppsScriptClient(url, token)
    start = time.perf_counter()
    try:
        await client.call(action)
    except PortalException as exc:
        return {
            "ok": False,
            "action": action,
            "code": exc.code,
            "error": exc.message,
            "duration_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    return {
        "ok": True,
        "action": action,
        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
    }


def _parse_args() -> argparse.Namespace:
    config = get_config("portal", 3000)
    parser = argparse.ArgumentParser(description="Check that the Apps Script backend answers.")
    parser.add_argument("--url", default=config.apps_script_url, help="Apps Script Web App URL")
    parser.add_argument("--token", default=config.apps_script_token, help="Shared token sent as _token")
    parser.add_argument("--action", default="ping", help="Action to call")
    parser.add_argument("--log-level", default="warning", help="Log level for client diagnostics")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("check_upstream", args.log_level)
    result = asyncio.run(check(args.url, args.token, args.action))
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0 if result["ok"] else 1


if __name__ == "__main__":
    sys.exit(main())
