# ==============================================
# Logging Setup
# ==============================================
#
# Every module logs through `logging.getLogger(__name__)`.
# Entry points (the CLI) call configure_logging() once to attach
# a single stream handler to the "rackscope" logger.
# ==============================================

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    root = logging.getLogger("rackscope")
    root.setLevel(level.upper())

    # Idempotent: repeated calls replace the handler instead of stacking them
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    return root
