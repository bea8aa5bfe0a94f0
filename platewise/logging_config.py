"""
Logging setup for the pricing service and scripts.

Modules log through `logging.getLogger(__name__)` and pass pricing context
(package counts, sizes, ingredient names) as `extra=`. The formatter here
appends those fields to the line so a heuristic that fired on one recipe,
say a default package size or a package-count override, can be traced from
the log alone:

    2024-01-01T12:00:00 [INFO] platewise.cost: Implausible package count, charging a single package packages=40 required=1999.0 package_size=50.0
"""

import logging
import sys

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Formatter that appends a record's extra= fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if not context:
            return line
        return line + " " + " ".join(f"{k}={v}" for k, v in context.items())


def configure_logging(level: str = "INFO") -> None:
    """Send platewise logs to stdout at *level*; safe to call more than once."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.handlers = [handler]

    # Request lines and limiter bookkeeping drown out pricing logs at INFO
    for name in ("werkzeug", "flask_limiter"):
        logging.getLogger(name).setLevel(logging.WARNING)
