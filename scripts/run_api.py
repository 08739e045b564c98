#!/usr/bin/env python3
"""Run the FastAPI server (pairs, candles, sync trigger).

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT]

Environment:
    DATABASE_URL - Required. PostgreSQL connection string.
    CRON_SECRET  - Optional. Bearer token required by /sync.

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the FastAPI server for pairs, candles and the sync trigger.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    load_dotenv(_REPO_ROOT / ".env")

    if not (os.environ.get("DATABASE_URL") or os.environ.get("POSTGRES_URL")):
        print("Error: DATABASE_URL environment variable is required", file=sys.stderr)
        return 1

    print(f"Starting FastAPI server on {args.host}:{args.port}")
    print("Endpoints:")
    print(f"  - GET      http://{args.host}:{args.port}/health")
    print(f"  - GET      http://{args.host}:{args.port}/pairs")
    print(f"  - GET      http://{args.host}:{args.port}/candles")
    print(f"  - GET/POST http://{args.host}:{args.port}/sync")
    print()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
