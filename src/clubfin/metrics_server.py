"""
Prometheus metrics server for clubfin.

Exposes reallocation, skip and alert-status metrics at /metrics.

Usage:
    python -m clubfin.metrics_server --port 9090
"""

import argparse
import time

from clubfin.kernel.logging import configure_logging, get_logger
from clubfin.kernel.metrics import start_metrics_server

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, start the exporter and block until interrupted."""
    parser = argparse.ArgumentParser(description="clubfin metrics exporter")
    parser.add_argument("--port", type=int, default=9090, help="Port to listen on (default: 9090)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (default when ENVIRONMENT=production)",
    )
    args = parser.parse_args(argv)

    configure_logging(json_output=args.json_logs or None, log_level=args.log_level)
    start_metrics_server(port=args.port)
    logger.info("Metrics server started", endpoint=f"http://0.0.0.0:{args.port}/metrics")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")


if __name__ == "__main__":
    main()
