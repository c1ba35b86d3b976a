"""Logging configuration shared by the CLI and the HTTP app."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    # SQLAlchemy's engine logger is driven by ``database_echo`` instead
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
