import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from .constants import CHUNK_SIZE_BYTES_DEFAULT


def setup_logging(
    verbosity: int,
    *,
    package_names: Iterable[str] = (
        "text_chunker",
        "ollama_compressor",
    ),
    muted_packages: Iterable[str] = ("httpx", "httpcore"),
) -> None:
    """Configure logging with verbose output scoped to project packages."""

    levels = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG, 3: logging.DEBUG}
    level = levels.get(verbosity, logging.DEBUG)

    if verbosity >= 3:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbosity >= 2:
        format_str = "%(levelname)s: %(message)s"
    else:
        format_str = "%(message)s"

    formatter = logging.Formatter(format_str)

    root_handler = logging.StreamHandler(sys.stderr)
    root_handler.setFormatter(formatter)
    root_handler.setLevel(logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)
    root_logger.addHandler(root_handler)

    project_handler = logging.StreamHandler(sys.stderr)
    project_handler.setFormatter(formatter)
    project_handler.setLevel(level)

    for package_name in package_names:
        package_logger = logging.getLogger(package_name)
        package_logger.handlers.clear()
        package_logger.setLevel(level)
        package_logger.addHandler(project_handler)
        package_logger.propagate = False

    for muted_name in muted_packages:
        muted_logger = logging.getLogger(muted_name)
        muted_logger.setLevel(logging.WARNING)


def add_base_args(parser: argparse.ArgumentParser) -> None:
    """Add base arguments shared by CLIs."""
    # Both the single-dash spelling (-input) and the GNU one (--input) work.
    parser.add_argument(
        "-input",
        "--input",
        dest="input_file",
        type=Path,
        help="Path to the input file (required)",
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=CHUNK_SIZE_BYTES_DEFAULT,
        help="Maximum chunk size in bytes (default: %(default)s)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be used multiple times: -v, -vv, -vvv)",
    )
