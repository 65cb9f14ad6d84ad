"""Process-wide logging setup.

Service modules only create ``logging.getLogger(__name__)`` loggers; this module
decides where their records go. ``main`` calls ``configure_logging`` at import.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
HANDLER_NAME = "contract_engine.stdout"


def configure_logging(level: int | str = logging.INFO) -> logging.Handler:
    """Send log records to stdout at ``level``.

    The stdout handler is installed on the root logger once; calling again only
    changes the level and returns the existing handler.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    return handler
