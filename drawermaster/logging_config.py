# drawermaster/logging_config.py
"""
Logging configuration for the whole DrawerMaster service.
Keeps a detailed trace of every byte sent to the drawer line.
"""

import logging
import logging.handlers
import os
from pathlib import Path

def setup_logging(log_level: str = "DEBUG", log_to_file: bool = True, log_dir: str | Path = "logs"):
    """
    Configure logging for the whole project.

    Args:
        log_level: Root level (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Write rotating log files or console only
        log_dir: Directory for the log files
    """
    log_level = log_level.upper()

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d [%(name)20s] %(levelname)8s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_formatter = logging.Formatter(
        fmt="%(asctime)s [%(name)15s] %(levelname)5s: %(message)s",
        datefmt="%H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "drawer_master.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(getattr(logging, log_level))
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

        # Serial traffic only
        serial_handler = logging.handlers.RotatingFileHandler(
            log_dir / "serial_communication.log",
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=10
        )
        serial_handler.setLevel(logging.DEBUG)
        serial_handler.setFormatter(detailed_formatter)
        serial_handler.addFilter(lambda record: record.name.startswith('escpos.driver'))
        root_logger.addHandler(serial_handler)

        update_handler = logging.handlers.RotatingFileHandler(
            log_dir / "auto_update.log",
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=5
        )
        update_handler.setLevel(logging.INFO)
        update_handler.setFormatter(detailed_formatter)
        update_handler.addFilter(lambda record: record.name == 'AutoUpdate')
        root_logger.addHandler(update_handler)

    loggers_config = {
        'escpos.driver': logging.DEBUG,
        'DrawerMaster': logging.DEBUG,
        'AutoUpdate': logging.INFO,
        'API': logging.INFO,
        'uvicorn': logging.INFO,
        'uvicorn.access': logging.WARNING,  # less HTTP noise
        'asyncio': logging.WARNING
    }

    for logger_name, level in loggers_config.items():
        logging.getLogger(logger_name).setLevel(level)

    setup_log = logging.getLogger("LoggingSetup")
    setup_log.info("=== LOGGING SYSTEM INITIALIZED ===")
    setup_log.info("Log level: %s", log_level)
    setup_log.info("Log to file: %s", log_to_file)
    if log_to_file:
        setup_log.info("Log directory: %s", Path(log_dir).absolute())
    setup_log.info("Configured loggers: %s", list(loggers_config.keys()))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_hex_data(logger: logging.Logger, level: int, message: str, data: bytes, max_bytes: int = 64):
    """
    Log binary data as hex, truncated in the middle past ``max_bytes``.
    """
    if not logger.isEnabledFor(level):
        return

    if len(data) <= max_bytes:
        hex_data = data.hex(" ").upper()
        logger.log(level, "%s (%d bytes): %s", message, len(data), hex_data)
    else:
        hex_start = data[:max_bytes//2].hex(" ").upper()
        hex_end = data[-max_bytes//2:].hex(" ").upper()
        logger.log(level, "%s (%d bytes): %s ... %s",
                  message, len(data), hex_start, hex_end)


def log_command_summary(logger: logging.Logger, direction: str, port: str | None,
                        command: str, details: str = ""):
    """
    One-line summary of a command on the drawer line.

    Args:
        logger: Target logger
        direction: "TX" or "RX"
        port: Serial port the command went through
        command: Command name
        details: Free-form details
    """
    marker = ">>>" if direction == "TX" else "<<<"
    logger.info("%s DRAWER %s: %s %s", marker, port or "-", command, details)


if os.getenv("DRAWER_MASTER_AUTO_LOGGING", "0") == "1":
    log_level = os.getenv("DRAWER_MASTER_LOG_LEVEL", "DEBUG")
    log_to_file = os.getenv("DRAWER_MASTER_LOG_TO_FILE", "1") == "1"
    setup_logging(log_level, log_to_file)
