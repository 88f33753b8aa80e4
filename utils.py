# utils.py
"""
Logging setup and config.json access for Stellar Nursery.

Nothing here knows about particles or sessions; main.py calls these before
any of the session modules are built.
"""
import logging
import logging.handlers
import json
import os
from typing import Dict, Any

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: The whole config document. Reads its optional "logging"
#       section: "level", "format", "log_file", "max_bytes", "backup_count"
#       and "quiet_loggers". Missing keys fall back to the defaults below.
#   - Side Effects: Replaces the root logger's handlers with a console
#     handler and a rotating file handler. Creates the log directory.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Outputs: The parsed JSON object.
#   - Side Effects: Logs and re-raises if the file is missing or malformed.
#     Raises ValueError when the document is not a JSON object.

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = 'logs/stellar_nursery.log'
DEFAULT_LOG_MAX_BYTES = 512 * 1024
DEFAULT_LOG_BACKUPS = 3
# Numba logs every compiler pass at DEBUG.
DEFAULT_QUIET_LOGGERS = ('numba',)


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Routes every log record of a session to the console and a rotating file.

    A frame loop at DEBUG fills a file quickly, so the file rotates; the size
    and number of kept files come from the "logging" section.
    """
    log_config = config_section(config, 'logging')
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', DEFAULT_LOG_FORMAT)
    log_file_path = log_config.get('log_file', DEFAULT_LOG_FILE)
    max_bytes = int(log_config.get('max_bytes', DEFAULT_LOG_MAX_BYTES))
    backup_count = int(log_config.get('backup_count', DEFAULT_LOG_BACKUPS))

    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # A restart from main() must not stack a second set of handlers.
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=max_bytes, backupCount=backup_count
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    for name in log_config.get('quiet_loggers', DEFAULT_QUIET_LOGGERS):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"Stellar Nursery logging to console and {log_file_path} at {log_level}.")
    logging.debug(f"Log rotation: {max_bytes} bytes x {backup_count} backups.")


def load_config(path: str) -> Dict[str, Any]:
    """Loads config.json (or another JSON file with the same sections)."""
    logging.info(f"Loading session configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise
    if not isinstance(config, dict):
        msg = f"Configuration error: {path} must hold a JSON object, got {type(config).__name__}."
        logging.critical(msg)
        raise ValueError(msg)
    logging.info(f"Configuration loaded with sections: {', '.join(sorted(config)) or 'none'}.")
    return config


def config_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """
    Returns one section of the configuration, or an empty dict when absent.

    A section that is present but not a JSON object is a configuration error.
    """
    section = config.get(name, {})
    if not isinstance(section, dict):
        msg = f"Configuration error: section '{name}' must be an object, got {type(section).__name__}."
        logging.critical(msg)
        raise ValueError(msg)
    return section
