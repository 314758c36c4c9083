"""Streamlit entrypoint: configure logging, then draw the intake form."""

import logging
import os

from Home import main as render_form

LOG_LEVEL_ENV = "INTAKE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    """Send ``lib`` log records to stderr at the level named by ``INTAKE_LOG_LEVEL``."""

    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("lib")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


def main() -> None:
    configure_logging()
    render_form()


if __name__ == "__main__":
    main()
