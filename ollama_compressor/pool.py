import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from text_chunker.byte_chunker import Chunk

from .models import ChunkResult, RunSummary

logger = logging.getLogger(__name__)


def process_chunks(
    chunks: Sequence[Chunk],
    worker: Callable[[Chunk], ChunkResult],
    *,
    concurrency: int,
    on_result: Optional[Callable[[ChunkResult], None]] = None,
) -> List[ChunkResult]:
    """
    Run ``worker`` over every chunk with at most ``concurrency`` calls in flight.

    Results come back in completion order and are slotted by chunk index, so
    the returned list is ordered by index. This is the only place results are
    collected; ``on_result`` is called from here (the calling thread) once per
    chunk, e.g. to advance a progress bar.

    Raises:
        ValueError: If concurrency is below 1
        RuntimeError: If a worker returns a result for an unknown or already
            collected index
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    if not chunks:
        return []
    total = len(chunks)
    slots: List[Optional[ChunkResult]] = [None] * total

    logger.info(f"Processing {total} chunks with up to {concurrency} in flight")
    with ThreadPoolExecutor(
        max_workers=concurrency, thread_name_prefix="chunk-worker"
    ) as ex:
        futures = [ex.submit(worker, chunk) for chunk in chunks]
        for fut in as_completed(futures):
            result = fut.result()
            if not 0 <= result.index < total:
                raise RuntimeError(f"Result for unknown chunk index {result.index}")
            if slots[result.index] is not None:
                raise RuntimeError(f"Duplicate result for chunk {result.index}")
            slots[result.index] = result
            if on_result is not None:
                on_result(result)

    missing = [i for i, r in enumerate(slots) if r is None]
    if missing:
        raise RuntimeError(f"No result for chunk(s): {missing}")
    return [r for r in slots if r is not None]


def summarize(
    results: Sequence[ChunkResult], *, input_bytes: int, output_bytes: int
) -> RunSummary:
    return RunSummary(
        total=len(results),
        failed=sum(1 for r in results if not r.ok),
        input_bytes=input_bytes,
        output_bytes=output_bytes,
    )
