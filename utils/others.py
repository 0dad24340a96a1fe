import logging
import os
import time
from datetime import datetime, timezone

from definitions import LOGS_DIR

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[38;5;244m",  # gray
        "INFO": "\033[38;5;120m",  # soft mint green
        "WARNING": "\033[38;5;221m",  # warm yellow
        "ERROR": "\033[38;5;196m",  # bright red
        "CRITICAL": "\033[1;38;5;196;48;5;232m",  # bold bright red on dark bg
    }
    RESET = "\033[0m"

    def format(self, record):
        level = record.levelname
        if level in self.COLORS:
            record.levelname = f"{self.COLORS[level]}{level}{self.RESET}"
        return super().format(record)


def setup_logging(config, console=False, debug=False):
    """
    Sets up the logging configuration based on provided settings.

    Args:
        config (dict): The configuration dictionary containing script settings.
        console (bool): If True, log to console instead of a file.
        debug (bool): If True, set the logging level to DEBUG; otherwise, INFO.
    """
    # Generate log file name
    log_file_name_base = config.get("script", {}).get("log_file_name", "blogsync")
    log_file_name_time = datetime.now().strftime("%Y%m%d%H%M%S")
    log_file_name_full = f"{log_file_name_base}-{log_file_name_time}.log"
    log_file_path = os.path.join(LOGS_DIR, log_file_name_full)

    # Ensure the logs directory exists
    os.makedirs(LOGS_DIR, exist_ok=True)

    # Define logger level
    logger_level = logging.DEBUG if debug else logging.INFO

    # Define logging format
    log_format = "%(asctime)s [%(name)s.%(funcName)s:%(lineno)d] %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    # Configure logging handlers
    handlers = []

    if console:
        handler = logging.StreamHandler()
        handler.setFormatter(ColoredFormatter(log_format, datefmt=date_format))
        handlers.append(handler)
    else:
        handler = logging.FileHandler(log_file_path)
        handler.setFormatter(logging.Formatter(log_format, date_format))
        handlers.append(handler)

    # Set up the logging configuration
    logging.basicConfig(
        level=logger_level,
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
    )

    # Quiet down urllib3's per-connection chatter unless we're debugging
    if not debug:
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger.info("Logging initialized.")
    if console:
        logger.info("Logging to console.")
    else:
        logger.info(f"Logging to file: {log_file_path}")


def log_startup_info(args, config):
    """
    Log startup information, including arguments and configuration details.

    Args:
        args (Namespace): The parsed arguments.
        config (dict): The configuration dictionary.
    """
    logger.info("#" * 80)
    logger.info("New instance of blogsync started.")
    logger.info("TIME: %s", datetime.now())
    logger.info("Startup Parameters:")

    for arg, value in vars(args).items():
        logger.info(f"  ARG - {arg}: {value}")

    api_config = config.get("api", {})
    logger.info("API Configuration:")
    logger.info("  API - base_url: %s", api_config.get("base_url"))
    logger.info("  API - timeout: %s", api_config.get("timeout"))

    logger.info("#" * 80)


def now_ms() -> int:
    """Milliseconds since the epoch, the unit used for queue timestamps."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
