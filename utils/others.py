import logging
import os
from datetime import datetime

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
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[level]}{level}{self.RESET}"
        return super().format(record)


def setup_logging(config, console=False, debug=False, logs_dir=LOGS_DIR):
    """
    Sets up the logging configuration based on provided settings.

    Args:
        config (dict): The configuration dictionary containing script settings.
        console (bool): If True, log to console instead of a file.
        debug (bool): If True, set the logging level to DEBUG; otherwise, INFO.
        logs_dir (Path): Where log files go when not logging to the console.
    """
    script_cfg = config.get("script", {}) or {}
    log_file_name_base = script_cfg.get("log_file_name", "socialpublish")
    log_file_name_time = datetime.now().strftime("%Y%m%d%H%M%S")
    log_file_path = os.path.join(logs_dir, f"{log_file_name_base}-{log_file_name_time}.log")

    logger_level = logging.DEBUG if debug else logging.INFO

    log_format = "%(asctime)s [%(name)s.%(funcName)s:%(lineno)d] %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    handlers = []

    if console:
        handler = logging.StreamHandler()
        handler.setFormatter(ColoredFormatter(log_format, datefmt=date_format))
        handlers.append(handler)
    else:
        os.makedirs(logs_dir, exist_ok=True)
        handler = logging.FileHandler(log_file_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(log_format, date_format))
        handlers.append(handler)

    logging.basicConfig(
        level=logger_level,
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )

    # SDK chatter drowns out our own publish logs at DEBUG.
    for noisy in ("httpx", "urllib3", "tweepy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("Logging initialized.")
    if console:
        logger.info("Logging to console.")
    else:
        logger.info("Logging to file: %s", log_file_path)


def log_startup_info(args, config):
    """
    Log startup information, including arguments and configuration details.

    Args:
        args (Namespace): The parsed arguments.
        config (dict): The configuration dictionary.
    """
    logger.info("#" * 80)
    logger.info("New instance of socialpublish started.")
    logger.info("TIME: %s", datetime.now())
    logger.info("Startup Parameters:")

    for arg, value in vars(args).items():
        logger.info("  ARG - %s: %s", arg, value)

    logger.info("Social Media Configurations:")
    socials_config = config.get("socials", {}) or {}
    for platform, enabled in socials_config.items():
        logger.info("  SOCIAL - %s: %s", platform, enabled)

    logger.info("#" * 80)
