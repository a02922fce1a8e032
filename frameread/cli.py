#!/usr/bin/env python3
"""Command-line interface for FrameRead."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from frameread.config import DEFAULT_FRAME_INTERVAL, DEFAULT_INIT_TIMEOUT, DEFAULT_MIN_CONFIDENCE, PipelineConfig
from frameread.display import RunProgressDisplay
from frameread.engines import EngineRegistry
from frameread.errors import ExportError, InputRejected
from frameread.export import export_text
from frameread.models import PipelineRun, RunStage
from frameread.ocr_engine import LANGUAGE_CODES
from frameread.pipeline import FramePipeline, PipelineListener, PipelineSession
from frameread.profiler import profiler

logger = logging.getLogger(__name__)


def _suppress_logging():
    """Suppress logging output that interferes with rich display."""
    null_handler = logging.NullHandler()
    package_logger = logging.getLogger('frameread')
    package_logger.setLevel(logging.CRITICAL)
    package_logger.handlers = [null_handler]
    package_logger.propagate = False


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='[%(levelname)s] %(name)s: %(message)s',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frameread",
        description="Extract frames from a video and OCR the text on each one",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One frame per second, text printed to stdout:
  frameread --input lecture.mp4

  # One frame every 5 seconds, text written to a file:
  frameread --input slides.webm --interval 5 --output slides.txt

  # Plain log output instead of the live display:
  frameread --input clip.mp4 --no-display --verbose
        """
    )

    parser.add_argument("--input", type=str, required=True, help="Video file to process (.mp4 or .webm)")
    parser.add_argument("--interval", type=float, default=DEFAULT_FRAME_INTERVAL,
                        help=f"Seconds of video between extracted frames (default: {DEFAULT_FRAME_INTERVAL:g})")
    parser.add_argument("--output", type=str, default=None, help="Write the exported text to this file instead of stdout")

    # Engine settings
    parser.add_argument("--lang", type=str, default="eng", choices=sorted(LANGUAGE_CODES), help="OCR language (default: eng)")
    parser.add_argument("--ocr-device", type=str, default="auto", choices=["auto", "gpu", "cpu"], help="Force OCR device usage (default: auto)")
    parser.add_argument("--min-confidence", type=float, default=DEFAULT_MIN_CONFIDENCE,
                        help=f"Drop OCR detections below this confidence (default: {DEFAULT_MIN_CONFIDENCE:g})")
    parser.add_argument("--init-timeout", type=float, default=DEFAULT_INIT_TIMEOUT,
                        help=f"Seconds to wait for engines to initialize, 0 to wait indefinitely (default: {DEFAULT_INIT_TIMEOUT:g})")

    # Output / diagnostics
    parser.add_argument("--no-display", action="store_true", help="Disable the live progress display")
    parser.add_argument("--verbose", action="store_true", help="Debug logging (with --no-display)")
    parser.add_argument("--profile", type=str, default=None, help="Enable profiling and write to specified JSON file")
    return parser


def build_config(args: argparse.Namespace) -> PipelineConfig:
    gpu = None
    if args.ocr_device == "gpu":
        gpu = True
    elif args.ocr_device == "cpu":
        gpu = False

    return PipelineConfig(
        frame_interval=args.interval,
        init_timeout=args.init_timeout if args.init_timeout > 0 else None,
        language=args.lang,
        gpu=gpu,
        min_confidence=args.min_confidence,
    )


async def run_pipeline(video_path: Path, config: PipelineConfig, listener: Optional[PipelineListener] = None) -> PipelineRun:
    """Process one video with ffmpeg and EasyOCR, shutting the engines down afterwards."""
    registry = EngineRegistry.from_config(config)
    session = PipelineSession(FramePipeline(registry, config, listener))
    try:
        session.select_path(video_path)
        return await session.process()
    finally:
        await registry.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console(stderr=True)

    if args.interval <= 0:
        parser.error("--interval must be positive")

    if args.profile:
        profiler.enable(args.profile)

    config = build_config(args)

    display = None
    if args.no_display:
        _configure_logging(args.verbose)
    else:
        _suppress_logging()
        display = RunProgressDisplay(console=console)
        display.start()

    try:
        run = asyncio.run(run_pipeline(Path(args.input).expanduser(), config, display))
    except InputRejected as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        if display:
            display.stop()
        profiler.save_results()

    if run.stage is RunStage.FAILED:
        console.print(f"[red]{run.status_message}[/red]")
        return 1

    if run.notice:
        console.print(f"[yellow]{run.notice}[/yellow]")
        return 0

    if run.error:
        console.print(f"[yellow]WARNING:[/yellow] {len(run.failed_frames)} frame(s) failed OCR. Last error: {run.error}")

    try:
        export_text(run.results, Path(args.output) if args.output else None)
    except (ExportError, OSError) as e:
        console.print(f"[red]Error:[/red] Failed to export OCR text: {e}")
        return 1

    if args.output:
        console.print(f"[green]OCR text for {len(run.results)} frames written to {args.output}[/green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
