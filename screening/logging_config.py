"""Logging setup shared by the Lambda handlers and the local API."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    The Lambda runtime installs its own handler on the root logger; in that
    case only the level is changed so log lines keep the runtime's request id.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(numeric_level)
    else:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stdout)])

    # botocore is chatty at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
