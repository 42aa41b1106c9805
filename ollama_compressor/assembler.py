import logging
from pathlib import Path
from typing import List, Sequence, Union

from .constants import OUTPUT_SEPARATOR
from .errors import SetupError
from .models import ChunkResult, RunSummary

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def assemble(results: Sequence[ChunkResult]) -> str:
    """Join result contents in ascending index order."""
    ordered = sorted(results, key=lambda r: r.index)
    return OUTPUT_SEPARATOR.join(r.content for r in ordered)


def write_output(text: str, path: Union[str, Path]) -> int:
    """
    Write the assembled text, creating parent directories as needed.

    Fallback chunks may carry undecodable bytes as surrogate escapes; they are
    written back as the original bytes.

    Returns:
        Number of bytes written

    Raises:
        SetupError: If the directory or file cannot be written
    """
    path = Path(path)
    data = text.encode("utf-8", errors="surrogateescape")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise SetupError(f"Error writing to output file {path}: {e}") from e

    logger.info(f"Wrote {len(data)} bytes to {path}")
    return len(data)


def format_summary(summary: RunSummary, output_path: Union[str, Path]) -> List[str]:
    lines = [
        f"Compression complete: {summary.succeeded} of {summary.total} chunks "
        f"processed successfully ({summary.failed} errors)",
        f"Output saved to {output_path}",
    ]
    ratio = summary.compression_ratio
    if ratio is not None:
        lines.append(
            f"Compression ratio: {ratio:.2f}x (from {summary.input_bytes / _MB:.2f} MB "
            f"to {summary.output_bytes / _MB:.2f} MB)"
        )
    return lines
