#!/usr/bin/env python3
"""
Run the Dipalme Events API under uvicorn.

Host, port and log level default to HOST, PORT and LOG_LEVEL from the
environment (or .env).

Usage:
    python start_api.py                # serve on $HOST:$PORT
    python start_api.py --reload       # restart on code changes
    python start_api.py --workers 2    # several processes, one cache each
"""

import argparse
import logging

import uvicorn

from ingest import settings

logger = logging.getLogger(__name__)

APP = "api.main:app"
SOURCE_DIRS = ["api", "ingest", "scrapers"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the Dipalme Events API")
    parser.add_argument("--host", default=settings.HOST, help=f"Bind address (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Port (default: {settings.PORT})")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="uvicorn log level")
    parser.add_argument("--reload", action="store_true", help="Reload when api/, ingest/ or scrapers/ change")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (default: 1)")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    if args.reload and args.workers > 1:
        build_parser().error("--reload cannot be combined with --workers")

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s: %(message)s")
    if args.workers > 1:
        # the event cache lives in process memory
        logger.warning("%d workers will each scrape and cache events separately", args.workers)
    logger.info(
        "Serving %s on http://%s:%d, categories: %s",
        APP, args.host, args.port, ", ".join(settings.EVENT_CATEGORIES),
    )

    options = {"host": args.host, "port": args.port, "log_level": args.log_level}
    if args.reload:
        options.update(reload=True, reload_dirs=SOURCE_DIRS)
    else:
        options["workers"] = args.workers
    uvicorn.run(APP, **options)


if __name__ == "__main__":
    main()
