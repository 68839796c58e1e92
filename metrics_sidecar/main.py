"""Main entry point for the metrics side-car."""
import argparse
import logging
import signal
import sys
import threading

from prometheus_client import CollectorRegistry

from metrics_sidecar.auth import BearerTokenProvider
from metrics_sidecar.config import load_config
from metrics_sidecar.demo import DemoMetrics, start_demo_thread
from metrics_sidecar.scheduler import PushScheduler, start_scheduler_thread
from metrics_sidecar.self_metrics import PushSelfMetrics
from metrics_sidecar.server import SidecarAPI
from metrics_sidecar.snapshot import RegistrySnapshotSource


def setup_logging(log_level: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Metrics side-car - scrape endpoint and Prometheus remote write push"
    )
    parser.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to configuration YAML file"
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Populate the registry with demo metrics"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
        token_provider = BearerTokenProvider.from_file(config.auth.bearer_tokens_path)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level)
    logger = logging.getLogger(__name__)

    logger.info(f"Configuration loaded from: {args.config}")

    registry = CollectorRegistry()
    self_metrics = PushSelfMetrics(registry=registry, prefix=config.global_.self_metrics_prefix)
    stop_event = threading.Event()

    if args.demo or config.demo.enabled:
        demo = DemoMetrics(registry, seed=config.demo.seed)
        start_demo_thread(demo, config.demo.interval_s, stop_event)

    scheduler = None
    if config.push and config.push.enabled:
        scheduler = PushScheduler(
            config.push,
            RegistrySnapshotSource(registry),
            cancel=stop_event,
            self_metrics=self_metrics,
        )
        start_scheduler_thread(scheduler)
        logger.info(f"Push interval: {config.push.push_interval_s}s")
        if config.push.labels:
            logger.info(f"External labels: {config.push.labels}")
    else:
        logger.info("Remote write push disabled")

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not config.server.enabled:
        logger.info("Scrape server disabled, waiting for shutdown signal")
        stop_event.wait()
        return

    api = SidecarAPI(registry, scheduler, token_provider, self_metrics)

    logger.info(
        f"Serving metrics on {config.server.bind_address}:{config.server.port}/metrics"
    )
    try:
        api.run(host=config.server.bind_address, port=config.server.port)
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        stop_event.set()
        sys.exit(1)
    finally:
        stop_event.set()


if __name__ == "__main__":
    main()
