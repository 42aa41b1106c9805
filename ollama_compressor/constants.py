OLLAMA_BASE_URL_DEFAULT = "http://localhost:11434/api"
MODEL_DEFAULT = "llama3.2-vision:latest"
OUTPUT_FILE_DEFAULT = "llm.txt"

MODEL_ENV_VAR = "OLLAMA_COMPRESS_MODEL"
BASE_URL_ENV_VAR = "OLLAMA_COMPRESS_URL"

PROMPT_PREFIX_DEFAULT = (
    "Compress this text fragment without losing important information:"
)

MAX_CONCURRENT_REQUESTS_DEFAULT = 3
REQUEST_TIMEOUT_DEFAULT = 120.0  # seconds, per attempt
MAX_RETRIES_DEFAULT = 3  # total attempts per chunk
RETRY_DELAY_DEFAULT = 2.0  # seconds, fixed

OUTPUT_SEPARATOR = "\n\n"

#: How much of a response body to keep in error messages.
ERROR_BODY_PREVIEW_CHARS = 500
