import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(
    log_name: str = 'throttlify',
    verbose_console_logging: bool = True,
    log_dir: Path | None = None,
) -> logging.Logger:
    """Attach file and console handlers to the root logger.

    Module loggers (``logging.getLogger(__name__)``) propagate here, so one
    call configures the throttler, HTTP client and CLI together.

    Args:
        log_name: Log filename inside `log_dir`; also the returned logger's name
        verbose_console_logging: If True, console shows INFO level; if False, shows WARNING level
        log_dir: Directory for the rotating log file (default: logs/ beside this file)

    Returns:
        The named application logger
    """
    root = logging.getLogger()
    logger = logging.getLogger(log_name)

    # Guard against adding duplicate handlers on repeated calls
    if any(getattr(h, '_throttlify', False) for h in root.handlers):
        return logger

    root.setLevel(logging.INFO)

    log_dir = log_dir or Path(__file__).parent / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    file_formatter = logging.Formatter('%(asctime)s|%(name)s|%(levelname)s|%(funcName)s|%(lineno)d|%(message)s')
    file_handler = RotatingFileHandler(
        log_dir / log_name,
        maxBytes=1024 * 1024,  # 1 MB
        backupCount=5,
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(file_formatter)

    console_formatter = logging.Formatter('%(funcName)s|%(lineno)d|%(message)s')
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if verbose_console_logging else logging.WARNING)
    console_handler.setFormatter(console_formatter)

    for handler in (file_handler, console_handler):
        handler._throttlify = True
        root.addHandler(handler)

    return logger
