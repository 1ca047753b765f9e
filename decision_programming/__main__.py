"""Decision Programming service entrypoint.

Run with: python -m decision_programming --port=PORT
"""
from __future__ import annotations

import argparse
import logging

import uvicorn

from decision_programming.main import app

logger = logging.getLogger("decision_programming")


def main() -> None:
    parser = argparse.ArgumentParser(description="Decision Programming service")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    args = parser.parse_args()

    logger.info("Starting Decision Programming service on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
