import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from text_chunker.base_cli import add_base_args, setup_logging
from text_chunker.byte_chunker import chunk_file, count_chunks
from .assembler import assemble, format_summary, write_output
from .client import OllamaClient
from .constants import (
    BASE_URL_ENV_VAR,
    MAX_CONCURRENT_REQUESTS_DEFAULT,
    MAX_RETRIES_DEFAULT,
    MODEL_DEFAULT,
    MODEL_ENV_VAR,
    OLLAMA_BASE_URL_DEFAULT,
    OUTPUT_FILE_DEFAULT,
    REQUEST_TIMEOUT_DEFAULT,
    RETRY_DELAY_DEFAULT,
)
from .errors import SetupError
from .models import EndpointMode, RunConfig
from .pool import process_chunks, summarize


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-compress",
        description=(
            "Split a text file into byte chunks, compress each chunk with a "
            "local Ollama model and write the joined result."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_base_args(parser)

    parser.add_argument(
        "-o",
        "-output",
        "--output",
        dest="output",
        default=OUTPUT_FILE_DEFAULT,
        help="Output file name",
    )

    parser.add_argument(
        "-m",
        "-model",
        "--model",
        dest="model",
        help=f"Ollama model name to use (default: env {MODEL_ENV_VAR} or '{MODEL_DEFAULT}')",
    )

    # Validated in main() so that a bad value exits with status 1 like a
    # missing input does.
    parser.add_argument(
        "-api",
        "--api",
        dest="api",
        default=EndpointMode.GENERATE.value,
        help="Ollama API endpoint: 'generate' or 'chat'",
    )

    parser.add_argument(
        "-url",
        "--url",
        dest="url",
        help=f"Ollama API base URL (default: env {BASE_URL_ENV_VAR} or '{OLLAMA_BASE_URL_DEFAULT}')",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=MAX_CONCURRENT_REQUESTS_DEFAULT,
        help="Maximum concurrent requests to Ollama",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=REQUEST_TIMEOUT_DEFAULT,
        help="Timeout per request attempt, in seconds",
    )

    parser.add_argument(
        "--max-retries",
        type=int,
        default=MAX_RETRIES_DEFAULT,
        help="Attempts per chunk before falling back to the original text",
    )

    parser.add_argument(
        "--retry-delay",
        type=float,
        default=RETRY_DELAY_DEFAULT,
        help="Fixed delay between attempts, in seconds",
    )

    parser.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Show a progress bar while chunks are processed",
    )

    return parser


def _usage_error(parser: argparse.ArgumentParser, message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    parser.print_usage(sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = None
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        setup_logging(args.verbose)
        logger = logging.getLogger(__name__)

        if args.input_file is None:
            return _usage_error(parser, "Input file is required")

        try:
            mode = EndpointMode(args.api)
        except ValueError:
            return _usage_error(parser, "API endpoint must be 'generate' or 'chat'")

        input_path = args.input_file
        if not input_path.exists() or not input_path.is_file():
            logger.error(f"Input file not found: {input_path}")
            return 1

        try:
            file_size = input_path.stat().st_size
            config = RunConfig(
                model=args.model or os.environ.get(MODEL_ENV_VAR) or MODEL_DEFAULT,
                base_url=args.url
                or os.environ.get(BASE_URL_ENV_VAR)
                or OLLAMA_BASE_URL_DEFAULT,
                mode=mode,
                concurrency=args.concurrency,
                chunk_size=args.chunk_size,
                timeout=args.timeout,
                max_retries=args.max_retries,
                retry_delay=args.retry_delay,
            )
        except OSError as e:
            logger.error(f"Error getting file info: {e}")
            return 1
        except SetupError as e:
            logger.error(str(e))
            return 1

        print(f"Processing file: {input_path} ({file_size / 1024 / 1024:.2f} MB)")
        print(f"Using Ollama model: {config.model}")
        print(f"Using API endpoint: {mode.value}")
        print(
            f"Splitting file into {count_chunks(file_size, config.chunk_size)} chunks"
        )
        logger.info(f"Endpoint URL: {config.endpoint_url}")

        try:
            chunks = chunk_file(input_path, config.chunk_size)
        except OSError as e:
            logger.error(f"Error reading chunk: {e}")
            return 1
        input_bytes = sum(len(c) for c in chunks)

        with tqdm(
            total=len(chunks),
            desc="Processing with Ollama",
            unit="chunk",
            disable=not args.progress,
        ) as bar, OllamaClient(config) as client:
            results = process_chunks(
                chunks,
                client.process_chunk,
                concurrency=config.concurrency,
                on_result=lambda _result: bar.update(1),
            )

        try:
            output_bytes = write_output(assemble(results), args.output)
        except SetupError as e:
            logger.error(str(e))
            return 1

        summary = summarize(results, input_bytes=input_bytes, output_bytes=output_bytes)
        print()
        for line in format_summary(summary, args.output):
            print(line)
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logging.getLogger(__name__).error(f"Error: {e}")
        if args and getattr(args, "verbose", 0) >= 1:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
