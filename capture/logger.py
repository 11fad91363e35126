import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = "capture"


class CompanyFormatter(logging.Formatter):
    """
    Formats records in the company standard:
    [ Tue Jan 06 05:32:41 AM UTC 2026 ] : INFO : root : Message
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        # Either 'root' or the component that passed extra={"context": ...}
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logger(name=ROOT_LOGGER, log_file=None, level=logging.INFO):
    """Sets up a logger with the company standard format."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if setup_logger is called multiple times
    if logger.handlers:
        return logger

    # Component loggers (capture.pipeline, capture.ledger...) propagate to 'capture'
    if name != ROOT_LOGGER:
        logger.propagate = True
        setup_logger(ROOT_LOGGER, log_file=log_file, level=level)
        return logger

    formatter = CompanyFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Only the root 'capture' logger gets a FileHandler
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger under the 'capture' root, e.g. get_logger("pipeline")."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")
