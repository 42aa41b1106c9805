"""
Request bodies and response parsing for the two Ollama endpoints.

``/generate`` answers with a stream of newline-delimited JSON objects, each
carrying the next piece of text; ``/chat`` answers with one JSON document.
The shape of the chat document has changed across Ollama versions, so it is
parsed strictly first and by plain key lookup second.
"""

import json
import logging
from typing import Any, Callable, Iterable, Iterator, Optional, Union

import httpx
from pydantic import ValidationError

from .constants import ERROR_BODY_PREVIEW_CHARS, PROMPT_PREFIX_DEFAULT
from .errors import ResponseParseError, SerializationError
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    EndpointMode,
    GenerateRequest,
    GenerateStreamLine,
)

logger = logging.getLogger(__name__)


def _preview(body: Union[str, bytes]) -> str:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if len(body) > ERROR_BODY_PREVIEW_CHARS:
        return body[:ERROR_BODY_PREVIEW_CHARS] + "..."
    return body


def build_prompt(chunk_text: str, prefix: str = PROMPT_PREFIX_DEFAULT) -> str:
    return f"{prefix} {chunk_text}"


def build_request(
    model: str,
    chunk_text: str,
    mode: EndpointMode,
    prompt_prefix: str = PROMPT_PREFIX_DEFAULT,
) -> bytes:
    """
    Serialize the request body for one chunk.

    Args:
        model: Ollama model name
        chunk_text: Text of the chunk to compress
        mode: Endpoint the body is meant for
        prompt_prefix: Instruction placed before the chunk text

    Returns:
        UTF-8 encoded JSON body

    Raises:
        SerializationError: If the payload cannot be encoded
    """
    try:
        # Bytes of a character split across chunks travel as U+FFFD.
        wire_text = chunk_text.encode("utf-8", errors="surrogateescape").decode(
            "utf-8", errors="replace"
        )
        prompt = build_prompt(wire_text, prompt_prefix)
        if mode is EndpointMode.GENERATE:
            payload: Any = GenerateRequest(model=model, prompt=prompt)
        else:
            payload = ChatRequest(
                model=model, messages=[ChatMessage(role="user", content=prompt)]
            )
        return payload.model_dump_json().encode("utf-8")
    except (UnicodeError, ValueError) as e:
        raise SerializationError(f"error creating request: {e}") from e


def parse_generate_stream(lines: Iterable[Union[str, bytes]]) -> str:
    """
    Concatenate the ``response`` fields of a /generate stream.

    Reading stops at the first line with ``done: true``; anything after it is
    left unread. A line that does not parse, an empty one included, fails the
    whole response.
    """
    parts = []
    for raw_line in lines:
        try:
            line = GenerateStreamLine.model_validate_json(raw_line)
        except ValidationError as e:
            raise ResponseParseError(
                f"error parsing streaming response line: {_preview(raw_line)!r}: {e}"
            ) from e
        if line.error:
            raise ResponseParseError(f"stream reported an error: {line.error}")
        parts.append(line.response)
        if line.done:
            break
    return "".join(parts)


def parse_chat_body(body: Union[str, bytes]) -> str:
    """Extract ``message.content`` from a /chat response document."""
    try:
        chat = ChatResponse.model_validate_json(body)
    except ValidationError:
        chat = None
    if chat is not None and chat.message.content:
        return chat.message.content

    logger.debug("Chat response did not match the expected shape; trying key lookup")
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ResponseParseError(f"error parsing chat response: {e}") from e

    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content

    raise ResponseParseError(
        f"could not extract content from chat API response: {_preview(body)}"
    )


def parse_response(
    response: httpx.Response,
    mode: EndpointMode,
    *,
    guard: Optional[Callable[[Iterator[Any]], Iterator[Any]]] = None,
) -> str:
    """
    Parse a successful (200) response according to the endpoint mode.

    ``guard`` wraps the iterator the body is read through (lines for
    /generate, byte blocks for /chat), e.g. to enforce a deadline.
    """
    if mode is EndpointMode.GENERATE:
        lines: Iterator[Any] = response.iter_lines()
        return parse_generate_stream(guard(lines) if guard else lines)
    blocks: Iterator[Any] = response.iter_bytes()
    return parse_chat_body(b"".join(guard(blocks) if guard else blocks))
