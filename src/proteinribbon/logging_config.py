"""
Logging Configuration
Sets up the 'proteinribbon' logger used by the pipeline and the command-line tool.

Log records go to stderr so the per-mesh summary the CLI prints on stdout stays
machine-readable; an optional file receives the same records.
"""
import logging
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "proteinribbon"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'

# Storage and VTK libraries chatter at DEBUG when reading and writing meshes
LIBRARY_LOGGERS = ("h5py", "pyvista")


def resolve_level(level: Union[int, str]) -> int:
    """Accept a numeric level or a level name such as 'DEBUG'."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown logging level '{level}'.")
    return value


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    quiet_libraries: bool = True
) -> logging.Logger:
    """
    Attach console and optional file handlers to the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Numeric level or level name.
        log_file: Optional path; the file is overwritten on each run.
        quiet_libraries: Raise h5py and pyvista loggers to WARNING.

    Returns:
        The configured package logger.
    """
    level = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level))
    if log_file:
        logger.addHandler(_handler(logging.FileHandler(log_file, mode='w', encoding='utf-8'), level))

    if quiet_libraries:
        for name in LIBRARY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.debug(f"Logging initialized at {logging.getLevelName(level)}.")
    return logger
