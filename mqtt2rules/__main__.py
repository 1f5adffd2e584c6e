#!/usr/bin/env python3
"""Entry point for running mqtt2rules as a module: python -m mqtt2rules

This allows running the daemon with:
    python -m mqtt2rules [options]
"""

import signal
import logging

from mqtt2rules.core.config import Config
from mqtt2rules.core.daemon import RulesDaemon


def main():
    """Main entry point for the mqtt2rules daemon."""
    config = Config.from_args()
    daemon = RulesDaemon(config)

    # Handle SIGTERM for graceful shutdown (e.g., docker stop)
    def handle_signal(signum, frame):  # pylint: disable=unused-argument
        logging.info("Received signal %d, stopping...", signum)
        daemon.stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    daemon.start()


if __name__ == "__main__":
    main()
