from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from text_chunker.constants import CHUNK_SIZE_BYTES_DEFAULT

from .constants import (
    MAX_CONCURRENT_REQUESTS_DEFAULT,
    MAX_RETRIES_DEFAULT,
    MODEL_DEFAULT,
    OLLAMA_BASE_URL_DEFAULT,
    PROMPT_PREFIX_DEFAULT,
    REQUEST_TIMEOUT_DEFAULT,
    RETRY_DELAY_DEFAULT,
)
from .errors import SetupError


class EndpointMode(Enum):
    GENERATE = "generate"
    CHAT = "chat"


@dataclass(frozen=True)
class RunConfig:
    model: str = MODEL_DEFAULT
    base_url: str = OLLAMA_BASE_URL_DEFAULT
    mode: EndpointMode = EndpointMode.GENERATE
    concurrency: int = MAX_CONCURRENT_REQUESTS_DEFAULT
    chunk_size: int = CHUNK_SIZE_BYTES_DEFAULT
    timeout: float = REQUEST_TIMEOUT_DEFAULT
    max_retries: int = MAX_RETRIES_DEFAULT
    retry_delay: float = RETRY_DELAY_DEFAULT
    prompt_prefix: str = PROMPT_PREFIX_DEFAULT

    def __post_init__(self) -> None:
        problems = []
        if self.concurrency < 1:
            problems.append(f"concurrency must be >= 1 (got {self.concurrency})")
        if self.chunk_size < 1:
            problems.append(f"chunk size must be >= 1 (got {self.chunk_size})")
        if self.max_retries < 1:
            problems.append(f"max retries must be >= 1 (got {self.max_retries})")
        if self.timeout <= 0:
            problems.append(f"timeout must be > 0 (got {self.timeout})")
        if self.retry_delay < 0:
            problems.append(f"retry delay must be >= 0 (got {self.retry_delay})")
        if problems:
            raise SetupError("Invalid run configuration: " + "; ".join(problems))

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.mode.value}"


@dataclass(frozen=True)
class ChunkResult:
    index: int
    # On failure this is the original chunk text, never empty.
    content: str
    error: Optional[Exception] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RunSummary:
    total: int
    failed: int
    input_bytes: int
    output_bytes: int

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    @property
    def compression_ratio(self) -> Optional[float]:
        """input/output byte ratio, or None when nothing was written."""
        if self.output_bytes <= 0:
            return None
        return self.input_bytes / self.output_bytes


# Wire payloads of the Ollama HTTP API


class ChatMessage(BaseModel):
    role: str = Field(description="Message author: 'user' or 'assistant'.")
    content: str = Field(description="Message text.")


class GenerateRequest(BaseModel):
    model: str
    prompt: str


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessage]


class GenerateStreamLine(BaseModel):
    # One line of the newline-delimited /generate stream
    response: str = Field(default="", description="Next piece of generated text.")
    done: bool = Field(default=False, description="True on the final line.")
    error: Optional[str] = Field(
        default=None, description="Set when the server aborts the stream."
    )


class ChatResponse(BaseModel):
    message: ChatMessage
