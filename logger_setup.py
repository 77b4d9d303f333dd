# logger_setup.py

import logging
import os

LOGGER_NAME = "sparkle_matrix"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level="INFO", log_file=None, fmt=LOG_FORMAT):
    """
    Sets up logging for the controller.

    Configures a dedicated application logger (not the root logger) that
    writes to the console and, when log_file is given, to that file as well.
    Modules log through child loggers ("sparkle_matrix.remote", ...), so
    everything ends up in the same handlers. Werkzeug and urllib noise stays
    on the root logger.

    Calling this again replaces the handlers instead of duplicating them.
    Returns the configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # --- Keep our records off the root logger ---
    logger.propagate = False

    formatter = logging.Formatter(fmt)

    if logger.hasHandlers():
        logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging initialized at {logging.getLevelName(logger.level)}"
                + (f". Log file: {log_file}" if log_file else ""))
    return logger
