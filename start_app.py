# start_app.py
"""Create database tables and launch the API server."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

import uvicorn
from dotenv import load_dotenv

import config


def main(argv: list[str] | None = None) -> None:
    """Load settings, optionally create tables, then start the API."""

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--skip-create-tables",
        action="store_true",
        help="Start without creating missing tables up front",
    )
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    args = parser.parse_args(argv)

    load_dotenv()  # load environment variables from a .env file
    config.get_settings.cache_clear()
    config.get_settings()  # ensure settings are initialized with any override

    if not args.skip_create_tables:
        from restobill.app import db as app_db

        async def _prepare() -> None:
            try:
                await app_db.init_models()
            finally:
                await app_db.dispose_engine()

        try:
            asyncio.run(_prepare())
        except OSError as exc:
            print(f"database unavailable: {exc}", file=sys.stderr)
            raise SystemExit(1)

    uvicorn.run(
        "restobill.app.main:app",
        host="0.0.0.0",  # nosec B104: bind for local development
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
