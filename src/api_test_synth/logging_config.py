"""Logging setup for the CLI.

Library modules only call `logging.getLogger(__name__)`; handlers are
attached here, once, by the command-line entry point.
"""

import logging
import sys


def setup_logging(level: str = "WARNING") -> None:
    """Configure the root logger with a human-readable stderr handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Remove any existing handlers to avoid duplicate output
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root.addHandler(handler)

    # litellm is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
