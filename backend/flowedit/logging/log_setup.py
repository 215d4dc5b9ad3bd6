"""
Logging configuration for applications embedding the editor core.

The library itself only ever calls ``getLogger(__name__)``; hosts
(UI shells, tests) opt in to console output via ``configure_logging``.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the ``flowedit`` logger."""
    root = logging.getLogger("flowedit")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_flowedit_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
        handler._flowedit_handler = True
        root.addHandler(handler)

    return root
