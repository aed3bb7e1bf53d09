"""
Booking suggestion service entry point.

Serves the suggestion API for the coordinator UI, or runs the offline
console demo for development.

Usage:
    API server:   python main.py serve [--host 0.0.0.0] [--port 8000]
    Console mode: python main.py console [--scenario outage]
"""

import argparse
import logging
import sys

from src.config import settings

logger = logging.getLogger(__name__)


def _run_server(host: str, port: int) -> None:
    """Start the FastAPI app under uvicorn (requires provider credentials)."""
    import uvicorn

    from src.api.app import create_app

    if settings.providers.directions_backend == "google" and not settings.providers.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not set; travel estimates will be unavailable")
    uvicorn.run(create_app(config=settings), host=host, port=port, log_level=settings.log_level.lower())


def _run_console_mode(scenario: str) -> int:
    """Start the offline console demo (no API keys required)."""
    from console_demo import main as console_main

    return console_main(["--scenario", scenario])


def main() -> None:
    parser = argparse.ArgumentParser(description="Booking suggestion service.")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    console = sub.add_parser("console", help="Run the offline demo.")
    console.add_argument(
        "--scenario", choices=["standard", "outage", "fully_booked"], default="standard"
    )

    args = parser.parse_args()
    if args.command == "console":
        sys.exit(_run_console_mode(args.scenario))
    _run_server(getattr(args, "host", "127.0.0.1"), getattr(args, "port", 8000))


if __name__ == "__main__":
    main()
