#!/usr/bin/env python3
"""
StoreForge Checkout API runner

Usage:
    python run_app.py                    # Development server with auto-reload
    python run_app.py --mode prod        # Production mode, multiple workers
    python run_app.py --port 8001        # Custom port
    python run_app.py --host 127.0.0.1   # Custom host
"""

import argparse
import sys

import uvicorn

from storeforge.core.config import settings


def main() -> int:
    parser = argparse.ArgumentParser(
        description="StoreForge Checkout API runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode (default: dev)"
    )
    parser.add_argument("--host", default=settings.HOST, help=f"Host to bind to (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Port to bind to (default: {settings.PORT})")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload in dev mode")

    args = parser.parse_args()

    prod = args.mode == "prod"
    uvicorn.run(
        "storeforge.main:app",
        host=args.host,
        port=args.port,
        reload=not prod and not args.no_reload,
        workers=settings.WORKERS if prod else None,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
