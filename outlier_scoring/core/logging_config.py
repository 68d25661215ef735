"""
Logging configuration.

The package only installs a NullHandler on import. Applications call
``setup_logging()`` for console output, plus a rotating log file when
``config.logs_dir`` is set.
"""

import logging
import logging.handlers

from .config import config


def setup_logging(logger_name: str = "outlier_scoring") -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        logger_name: Name of the logger (the package name configures every module)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Don't add handlers if logger already configured
    if any(not isinstance(h, logging.NullHandler) for h in logger.handlers):
        return logger

    logger.setLevel(config.log_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.logs_dir is not None:
        log_file = config.logs_dir / f"{logger_name}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(config.log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Silent until the application calls setup_logging() or configures the root logger
logging.getLogger("outlier_scoring").addHandler(logging.NullHandler())
