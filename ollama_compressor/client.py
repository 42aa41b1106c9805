import logging
import time
from typing import Callable, Iterator, Optional, Tuple, TypeVar

import httpx

from text_chunker.byte_chunker import Chunk

from .errors import ChunkProcessingError, EndpointStatusError, TransportError
from .models import ChunkResult, RunConfig
from .payloads import build_request, parse_response

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retries(
    fn: Callable[[str], str],
    text: str,
    *,
    max_retries: int,
    retry_delay: float,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "chunk",
) -> Tuple[Optional[str], Optional[ChunkProcessingError], int]:
    """
    Call ``fn(text)`` up to ``max_retries`` times with a fixed delay in between.

    Only ``ChunkProcessingError`` counts as a failed attempt; anything else
    propagates. The delay blocks the calling thread only.

    Returns:
        (result, None, attempts) on success, (None, last_error, attempts)
        once every attempt has failed
    """
    attempts = max(1, int(max_retries))
    last_error: Optional[ChunkProcessingError] = None
    for attempt in range(1, attempts + 1):
        if attempt > 1:
            sleep(retry_delay)
        try:
            return fn(text), None, attempt
        except ChunkProcessingError as e:  # noqa: PERF203
            last_error = e
            logger.warning(
                f"Attempt {attempt}/{attempts}: error processing {label}: {e}"
            )

    logger.error(f"All attempts failed for {label}: {last_error}")
    return None, last_error, attempts


class OllamaClient:
    """
    Sends chunks to one Ollama endpoint.

    A single ``httpx.Client`` is shared by all worker threads. Pass
    ``http_client`` to supply one (e.g. with a mock transport); it is then
    left open by ``close()``.

    ``config.timeout`` bounds each attempt as a whole, including reading a
    streamed body; httpx on its own only bounds each individual read.
    """

    def __init__(
        self,
        config: RunConfig,
        http_client: Optional[httpx.Client] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._clock = clock
        self._owns_client = http_client is None
        self._http = (
            http_client
            if http_client is not None
            else httpx.Client(timeout=config.timeout)
        )

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "OllamaClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, text: str) -> str:
        """Run one attempt for ``text`` and return the generated text."""
        cfg = self.config
        deadline = self._clock() + cfg.timeout
        body = build_request(cfg.model, text, cfg.mode, cfg.prompt_prefix)
        url = cfg.endpoint_url

        try:
            with self._http.stream(
                "POST",
                url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=cfg.timeout,
            ) as response:
                if response.status_code != httpx.codes.OK:
                    response.read()
                    raise EndpointStatusError(
                        response.status_code, response.text, url=url
                    )
                return parse_response(
                    response,
                    cfg.mode,
                    guard=lambda items: self._until(deadline, items, url),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"error calling Ollama API at {url}: {e}") from e

    def _until(self, deadline: float, items: Iterator[T], url: str) -> Iterator[T]:
        for item in items:
            if self._clock() > deadline:
                raise TransportError(
                    f"request to {url} exceeded the {self.config.timeout:g}s timeout"
                )
            yield item

    def process_chunk(
        self, chunk: Chunk, *, sleep: Callable[[float], None] = time.sleep
    ) -> ChunkResult:
        """Compress one chunk, falling back to its original text on failure."""
        original = chunk.text
        result, error, attempts = call_with_retries(
            self.request,
            original,
            max_retries=self.config.max_retries,
            retry_delay=self.config.retry_delay,
            sleep=sleep,
            label=f"chunk {chunk.index}",
        )
        if error is not None:
            return ChunkResult(
                index=chunk.index, content=original, error=error, attempts=attempts
            )
        logger.debug(
            f"Chunk {chunk.index}: {len(chunk)} bytes -> {len(result)} chars "
            f"in {attempts} attempt(s)"
        )
        return ChunkResult(index=chunk.index, content=result, attempts=attempts)
