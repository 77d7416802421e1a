import logging
import os
import sys

import uvicorn

from .config.settings import get_config

# Configure logging with both console and file output
log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

log_file = os.environ.get("LOG_FILE", "")

# Create handlers
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(logging.Formatter(log_format))

file_handler = None
if log_file:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    try:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_format))
    except OSError as e:
        print(f"Cannot open log file {log_file}: {e}", file=sys.stderr)

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(logging.DEBUG)
root_logger.addHandler(console_handler)
if file_handler:
    root_logger.addHandler(file_handler)

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    config = get_config()

    if not config.position.gpx_path:
        logger.warning("GPX_PATH not set - positions must be pushed to /positions")

    if not config.webhook.url:
        logger.warning("WEBHOOK_URL not set - no notifications will be sent")

    logger.info(f"Starting Activity Tracker on {config.api.host}:{config.api.port}")
    logger.info(f"GPX track: {config.position.gpx_path or 'Not configured'}")
    logger.info(f"Webhook URL: {config.webhook.url or 'Not configured'}")
    logger.info(f"Milestone interval: {config.session.milestone_km}km")

    uvicorn.run(
        "src.api.app:app",
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        log_config=None,  # Use our pre-configured loggers
    )


if __name__ == "__main__":
    main()
