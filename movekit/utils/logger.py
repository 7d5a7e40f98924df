from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

_ROOT_LOGGER = "movekit"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

def get_logger(name:str):
    return logging.getLogger(name)

def setup_logging(log_dir:str | Path | None=None, level:str | int="INFO", console:bool=True, max_bytes:int=5_000_000, backups:int=3):
    '''
    Description
    -----------
    Configures the `movekit` logger hierarchy. Safe to call more than once; 
    handlers installed by a previous call are replaced rather than duplicated.

    Parameters
    ----------
    log_dir : str | Path, default=None
        Directory for the rotating `movekit.log` file. No file handler is installed if `None`.
    level : str | int, default="INFO"
        Logging level applied to the `movekit` logger.
    console : bool, default=True
        If True, also log to stderr.

    Returns
    -------
    The configured `movekit` logger
    '''
    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    for handler in list(root.handlers):
        if getattr(handler, "_movekit", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_FORMAT)

    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        stream._movekit = True
        root.addHandler(stream)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_dir / "movekit.log", maxBytes=max_bytes, backupCount=backups)
        file_handler.setFormatter(formatter)
        file_handler._movekit = True
        root.addHandler(file_handler)

    root.propagate = False
    root.debug(f"Logging configured at level {logging.getLevelName(root.level)} (log_dir={log_dir}).")
    return root
