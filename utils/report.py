"""Configures the logging system for a module."""
import os
import logging
from logging.handlers import RotatingFileHandler

from config import LOG_DIR, LOG_LEVEL

FORMAT = '%(asctime)s %(levelname)s [%(filename)s:%(lineno)d] %(message)s'


def settings(script_path):
    """Return a logger named after the script, writing to console and logs/<script>.log."""
    script_name = os.path.basename(script_path)
    log_name = script_name.rsplit('.', 1)[0] + '.log'
    log_file = os.path.join(LOG_DIR, log_name)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)

    logger = logging.getLogger(script_name)

    # Prevent adding multiple handlers
    if not logger.handlers:
        formatter = logging.Formatter(FORMAT)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1024 * 1024 * 10,  # 10 MB
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        logger.setLevel(LOG_LEVEL.upper())
        logger.propagate = False

    return logger
