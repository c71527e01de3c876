"""Main entry point for the Datadog metrics reporter."""
import argparse
import logging
import signal
import sys
import threading

from pythonjsonlogger.json import JsonFormatter

from dogmetrics.client import Client
from dogmetrics.config import load_config
from dogmetrics.control_api import ControlAPI
from dogmetrics.registry import Registry
from dogmetrics.reporter import MetricsReporter, ReporterSelfMetrics, run_reporter_thread

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DESCRIPTION = (
    "Datadog metrics reporter - push a metrics registry to Datadog. "
    "Run standalone, it reports only its own self-metrics "
    "(reports, errors, batch size, report duration); embed "
    "dogmetrics.MetricsReporter in an application to report its metrics."
)


def build_log_formatter(log_format: str) -> logging.Formatter:
    """Formatter for the configured log format."""
    if log_format == "json":
        return JsonFormatter(JSON_FIELDS, datefmt=DATE_FORMAT)
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(build_log_formatter(log_format))
    logging.basicConfig(level=level, handlers=[handler])

    # Reduce noise from some libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=DESCRIPTION)
    parser.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to configuration YAML file"
    )
    return parser


def main(argv=None):
    """Main function."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(f"Reporting as host '{config.datadog.host}' to {config.datadog.endpoint}")
    logger.info(f"Report interval: {config.reporter.interval_s}s")

    # Standalone runs start empty; only self-metrics get registered below.
    registry = Registry()
    client = Client(
        host=config.datadog.host,
        api_key=config.datadog.api_key,
        endpoint=config.datadog.endpoint,
        timeout_s=config.datadog.timeout_s,
    )

    self_metrics = None
    if config.reporter.self_metrics:
        self_metrics = ReporterSelfMetrics(registry, prefix=config.reporter.prefix)

    reporter = MetricsReporter(client, registry, self_metrics=self_metrics)

    reporter_thread = threading.Thread(
        target=run_reporter_thread,
        args=(reporter, config.reporter.interval_s),
        daemon=True
    )
    reporter_thread.start()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        reporter.stop()
        client.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not config.global_.control_api_enabled:
        reporter_thread.join()
        return

    control_api = ControlAPI(reporter, interval_s=config.reporter.interval_s)
    logger.info(f"Starting control API on port {config.global_.control_api_port}")
    try:
        control_api.run(
            host="0.0.0.0",
            port=config.global_.control_api_port
        )
    except Exception as e:
        logger.error(f"Control API error: {e}", exc_info=True)
        reporter.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
