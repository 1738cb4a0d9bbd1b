import argparse

from common.core.config import settings
from common.workers.launcher import WorkerLauncher
from packages.dunning.workers.dunning_worker import DunningWorker


def setup_cli():
    """Setup CLI arguments."""
    parser = argparse.ArgumentParser(description="Dunning Worker")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.dunning_scan_interval_seconds,
        help="Seconds between scans for due retries (default: from settings)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    return parser.parse_args()


def main():
    """Main entry point with command-line argument support."""
    args = setup_cli()
    WorkerLauncher().run(
        DunningWorker(interval_seconds=args.interval),
        worker_name="Dunning Worker",
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
