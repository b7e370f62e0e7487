"""
Standalone Prometheus endpoint for bookbuyback.

Exposes command, transition, event bus and authorization metrics at
/metrics for processes that embed BuybackApp without their own HTTP server.

Usage:
    bookbuyback-metrics --port 9090
    python -m bookbuyback.metrics_server --port 9090 --json-logs
"""

import argparse
import threading

from bookbuyback.kernel.logging import configure_logging, get_logger
from bookbuyback.kernel.metrics import start_metrics_server

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookbuyback-metrics",
        description="Serve bookbuyback Prometheus metrics",
    )
    parser.add_argument("--port", type=int, default=9090, help="Port to listen on (default: 9090)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Serve metrics until interrupted"""
    args = build_parser().parse_args(argv)
    configure_logging(json_output=args.json_logs, log_level=args.log_level)

    start_metrics_server(port=args.port)
    logger.info("Metrics endpoint up", url=f"http://0.0.0.0:{args.port}/metrics")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("Metrics endpoint stopped")


if __name__ == "__main__":
    main()
