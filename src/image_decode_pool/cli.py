#!/usr/bin/env python3
"""
Command line entry point: decode image files through the pools.

Usage:
    image-decode-pool photo.jpg scan.png --width 512 --height 512 --fit contain --worker
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import load_settings
from .context import DecodeContext
from .core.resize_rect import FitMode
from .errors import AcquireTimeoutError, ImageDecodePoolError
from .utils.log_utils import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Decode and resize images through bounded surface and worker pools")
    parser.add_argument("inputs", nargs="+", type=Path, help="Image files to decode")
    parser.add_argument("--width", type=int, help="Target width (requires --height)")
    parser.add_argument("--height", type=int, help="Target height (requires --width)")
    parser.add_argument("--fit",
                        default=FitMode.COVER.value,
                        choices=[m.value for m in FitMode],
                        help="Fit mode when resizing (default: cover)")
    parser.add_argument("--worker",
                        action="store_true",
                        help="Decode on background worker threads instead of pooled surfaces")
    parser.add_argument("--max-concurrent", type=int, help="Maximum decodes in flight")
    parser.add_argument("--log-level",
                        choices=["debug", "info", "warning", "error", "critical"],
                        help="Logging level (default: IDP_LOG_LEVEL or info)")
    args = parser.parse_args(argv)
    if (args.width is None) != (args.height is None):
        parser.error("--width and --height must be given together")
    return args


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    retry=retry_if_exception_type(AcquireTimeoutError),
    reraise=True,
)
async def _decode_file(ctx: DecodeContext, path: Path, resize: Optional[Dict[str, Any]], use_worker: bool):
    data = await asyncio.get_running_loop().run_in_executor(None, path.read_bytes)
    return await ctx.decode(data, resize, use_worker=use_worker)


async def decode_files(ctx: DecodeContext, paths: List[Path], resize: Optional[Dict[str, Any]],
                       use_worker: bool) -> Dict[Path, Any]:
    """Decode every path concurrently; each result is PixelData or the exception raised."""
    async def _one(path: Path):
        start = time.time()
        try:
            pixels = await _decode_file(ctx, path, resize, use_worker)
        except (ImageDecodePoolError, OSError) as err:
            logger.error(f"Failed to decode {path.name}: {err}")
            return path, err
        logger.debug(f"Decoded {path.name} in {time.time() - start:.2f}s")
        return path, pixels

    results = await asyncio.gather(*(_one(p) for p in paths))
    return dict(results)


def print_results(console: Console, results: Dict[Path, Any]) -> None:
    table = Table(title="Decoded images")
    table.add_column("File")
    table.add_column("Output", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Status")
    for path, result in results.items():
        if isinstance(result, Exception):
            table.add_row(path.name, "-", "-", f"[red]{result}[/red]")
        else:
            table.add_row(path.name, f"{result.width}x{result.height}", f"{len(result.data):,}", "[green]ok[/green]")
    console.print(table)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(max_concurrent=args.max_concurrent, log_level=args.log_level)
    configure_logging(settings.log_level)

    resize = None
    if args.width is not None:
        resize = {"width": args.width, "height": args.height, "fit": args.fit}

    async with DecodeContext.from_settings(settings) as ctx:
        results = await decode_files(ctx, args.inputs, resize, args.worker)

    print_results(Console(), results)
    return 1 if any(isinstance(r, Exception) for r in results.values()) else 0


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        code = asyncio.run(run(args))
    except ValidationError as err:
        print(f"Invalid configuration:\n{err}", file=sys.stderr)
        code = 2
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
