import logging

from logger_setup import LOGGER_NAME, setup_logging


def test_setup_replaces_handlers_and_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "sparkle.log"
    logger = setup_logging("debug", log_file=str(log_file))
    try:
        logger = setup_logging("debug", log_file=str(log_file))
        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert not logger.propagate
        assert len(logger.handlers) == 2

        logging.getLogger(f"{LOGGER_NAME}.session").warning("[Session] hello")
        for handler in logger.handlers:
            handler.flush()
        assert "[Session] hello" in log_file.read_text()
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
