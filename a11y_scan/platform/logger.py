import logging
import os
from logging.handlers import RotatingFileHandler

from a11y_scan.platform.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10_000_000
LOG_BACKUP_COUNT = 5


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    """Root logger setup for the app process; console only."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def log_file_path() -> str:
    log_dir = os.path.join(os.getcwd(), settings.LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, settings.LOG_FILE_NAME)


def get_logger(name: str):
    """
    Logger that writes to the console and to the rotating scan log file.

    Used for scan lifecycle events that should survive the process; everything
    else logs through `logging.getLogger(__name__)` and the root config.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler()]
    try:
        handlers.append(
            RotatingFileHandler(log_file_path(), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT)
        )
    except OSError as e:
        # read-only filesystems (serverless runtimes): console only
        logging.getLogger(__name__).warning(f"File logging disabled for {name}: {e}")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)

    # handlers are attached here, don't double print through the root logger
    logger.propagate = False

    return logger
