from typing import Optional


class CompressorError(Exception):
    """Base class for errors raised by ollama_compressor."""


class SetupError(CompressorError):
    """Fatal problem found before or after processing: flags, input or output files."""


class ChunkProcessingError(CompressorError):
    """A single chunk could not be processed. Retried, then replaced by the original text."""


class TransportError(ChunkProcessingError):
    pass


class SerializationError(ChunkProcessingError):
    pass


class ResponseParseError(ChunkProcessingError):
    pass


class EndpointStatusError(ChunkProcessingError):
    def __init__(self, status_code: int, body: str, *, url: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"API returned error status {status_code}: {body}")
