import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, List, Union

from .constants import CHUNK_SIZE_BYTES_DEFAULT


@dataclass(frozen=True)
class Chunk:
    """A slice of the input file, tagged with its position."""

    index: int
    content: bytes

    @property
    def text(self) -> str:
        # surrogateescape keeps a multi-byte character split across two chunks
        # decodable, and encoding the text back yields the original bytes.
        return self.content.decode("utf-8", errors="surrogateescape")

    def __len__(self) -> int:
        return len(self.content)


def count_chunks(size: int, chunk_size: int = CHUNK_SIZE_BYTES_DEFAULT) -> int:
    """Number of chunks a stream of ``size`` bytes splits into."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return (size + chunk_size - 1) // chunk_size


def iter_chunks(
    stream: BinaryIO, chunk_size: int = CHUNK_SIZE_BYTES_DEFAULT
) -> Iterator[Chunk]:
    """
    Lazily slice a binary stream into ordered chunks.

    Every chunk except the last holds exactly ``chunk_size`` bytes; short reads
    from the stream are topped up before a chunk is emitted. Joining the
    contents of all chunks reproduces the stream byte for byte.

    Args:
        stream: Readable binary stream
        chunk_size: Maximum chunk size in bytes

    Yields:
        Chunks with consecutive indices starting at 0

    Raises:
        ValueError: If chunk_size is not positive
        OSError: If reading the stream fails
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    index = 0
    while True:
        buf = stream.read(chunk_size)
        if not buf:
            return
        while len(buf) < chunk_size:
            more = stream.read(chunk_size - len(buf))
            if not more:
                break
            buf += more
        yield Chunk(index=index, content=bytes(buf))
        index += 1


def chunk_file(
    file_path: Union[str, Path], chunk_size: int = CHUNK_SIZE_BYTES_DEFAULT
) -> List[Chunk]:
    """Read a whole file into a list of byte chunks."""
    logger = logging.getLogger(__name__)

    with open(file_path, "rb") as f:
        chunks = list(iter_chunks(f, chunk_size))

    logger.debug(f"Read {len(chunks)} chunks from {file_path}")
    return chunks
