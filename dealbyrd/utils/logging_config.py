"""
Logging setup for DealByrd.

Every module logs through `logging.getLogger(__name__)`; this configures the
root logger once so gunicorn, the scheduler thread and CLI commands all share
the same format.
"""
import logging
import os
import sys

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure the root logger (idempotent)."""
    global _configured

    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)

    # APScheduler logs every job execution at INFO
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    _configured = True
