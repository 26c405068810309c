from __future__ import annotations

import logging


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., CLI + service in one process).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
