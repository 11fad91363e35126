"""
Entry point for the capture service.
Loads configuration, sets up logging, wires components and serves the API.
"""

import argparse
import logging

from capture.config import CaptureConfig
from capture.logger import setup_logger
from capture.service import build_app


def main():
    parser = argparse.ArgumentParser(description="Web capture service")
    parser.add_argument("--host", help="Bind address (default from CAPTURE_HOST)")
    parser.add_argument("--port", type=int, help="Listen port (default from PORT)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    config = CaptureConfig.from_env()
    logger = setup_logger(
        log_file=args.log_file or config.log_file,
        level=logging.DEBUG if args.debug else logging.INFO,
    )

    app = build_app(config)
    host = args.host or config.host
    port = args.port or config.port
    logger.info(
        f"[SYSTEM] Capture service on http://{host}:{port} "
        f"(max {config.max_concurrency} concurrent, queue {config.max_queue})"
    )
    # threaded=True: one request thread per capture, each driving its own browser
    app.run(host=host, port=port, threaded=True)


if __name__ == "__main__":
    main()
