# tracker_ingest/logging_setup.py

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure root logging once for the web app or a worker process."""
    resolved = logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("tracker_ingest").setLevel(resolved)
