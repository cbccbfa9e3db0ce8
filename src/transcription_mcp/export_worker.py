#!/usr/bin/env python3
"""
Transcription export worker - loads one acte and writes its Markdown export.

Runs outside the MCP server; configuration comes from the same
TRANSCRIPTION_* environment variables (or .env file).

Usage:
    python -m transcription_mcp.export_worker --acte-id <uuid> [--output <path>]

Without --output the Markdown is written to stdout.
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .client import TranscriptionSession, TranscriptionStoreClient
from .config import ServerConfig
from .models import TranscriptionError


def log_worker(message: str, component: str = "EXPORT_WORKER") -> None:
    """Log to stderr with timestamp."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the transcription of an acte as Markdown")
    parser.add_argument("--acte-id", required=True, help="Owning record whose documents are exported")
    parser.add_argument("--output", help="Destination file (default: stdout)")
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Worker entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig()  # type: ignore[call-arg]
    except ValidationError as e:
        log_worker(f"ERROR: invalid configuration: {e}")
        return 1

    log_worker(f"Exporting acte {args.acte_id}")
    async with TranscriptionStoreClient(config.get_api_config()) as client:
        session = TranscriptionSession(client)
        try:
            await session.load(args.acte_id)
        except TranscriptionError as e:
            log_worker(f"Export failed: {e}")
            return 1
        markdown = session.export_markdown()

    if args.output:
        output = Path(args.output)
        output.write_text(markdown, encoding="utf-8")
        log_worker(f"Wrote {len(markdown)} characters to {output}")
    else:
        sys.stdout.write(markdown)
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        log_worker("Worker interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    run()
