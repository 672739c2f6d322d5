"""
Infrastructure module - logging and live progress streams.
"""

from .logging_config import setup_logging
from .progress_hub import ProgressEvent, ProgressStream, ProgressStreamHub

__all__ = [
    # logging
    "setup_logging",
    # progress
    "ProgressEvent",
    "ProgressStream",
    "ProgressStreamHub",
]
