"""
Logging setup for the NetLens CLI
"""

import logging

from rich.logging import RichHandler


def setup_logging(log_level: str = "WARNING", show_path: bool = False):
    """
    Route all NetLens log records through a rich handler.

    Args:
        log_level: Root log level name (DEBUG, INFO, WARNING, ...)
        show_path: Include the emitting module path in each line
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.WARNING))

    # Avoid duplicate handlers when called twice
    for handler in root_logger.handlers[:]:
        if isinstance(handler, RichHandler):
            root_logger.removeHandler(handler)

    handler = RichHandler(show_path=show_path, rich_tracebacks=True, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
