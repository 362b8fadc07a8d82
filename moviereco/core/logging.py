# moviereco/core/logging.py
import logging
import sys
import colorlog

_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# Third-party loggers that flood INFO with per-request noise
_QUIET = ("pymongo", "motor", "httpx", "httpcore", "openai", "redis")


def configure_logging(level=logging.INFO, *, colored: bool = True):
    """
    Route every logger to stdout.
    Colored output for local runs; plain lines when colored=False (production log collectors).
    """
    handler = colorlog.StreamHandler(sys.stdout)
    if colored:
        handler.setFormatter(
            colorlog.ColoredFormatter(
                "%(log_color)s" + _FORMAT.replace("%(message)s", "%(reset)s%(message)s"),
                datefmt="%H:%M:%S",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                },
            )
        )
    else:
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in ("uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
