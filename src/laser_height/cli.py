"""Command line interface for measuring heights in images and videos."""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .debug_output import DEBUG_IMAGE_KEY
from .errors import LaserHeightError
from .frame_processor import FrameResult, VideoFrameResult, process_encoded_frame, process_video
from .height_calculation import is_ambiguous
from .options import DebugOptions, ProcessorOptions, load_processor_options

logger = logging.getLogger(__name__)

console = Console()


def _apply_overrides(options: ProcessorOptions, args: argparse.Namespace) -> ProcessorOptions:
    if args.strict:
        options = replace(options, strict_rows=True)
    if args.workers is not None:
        options = replace(options, max_workers=args.workers)
    if args.pixel_per_mm is not None:
        options = replace(options, calibration=replace(options.calibration, pixel_per_mm=args.pixel_per_mm))
    if args.debug_image:
        filenames = dict(options.debug.filenames)
        filenames[DEBUG_IMAGE_KEY] = args.debug_image
        options = replace(options, debug=DebugOptions(enabled=True, filenames=filenames))
    return options


def _print_frame(result: FrameResult, title: str) -> None:
    table = Table(title=title)
    table.add_column("Row", justify="right")
    table.add_column("Troughs")
    table.add_column("Height (mm)", justify="right")

    for row, height in result.heights.items():
        troughs = ", ".join(str(t) for t in result.troughs[row])
        shown = "[red]ambiguous[/red]" if is_ambiguous(height) else f"{height:.3f}"
        table.add_row(str(row), troughs, shown)

    console.print(table)
    console.print(
        f"Rows: {len(result.heights)}  ambiguous: {len(result.ambiguous_rows)}  "
        f"deviation range: {result.min_deviation}-{result.max_deviation}  "
        f"time: {result.processing_time_ms:.1f}ms"
    )
    if result.debug_error is not None:
        console.print(f"[yellow]Debug image not saved: {escape(str(result.debug_error))}[/yellow]")


def _run_image(args: argparse.Namespace, options: ProcessorOptions) -> int:
    with open(args.path, "rb") as f:
        data = f.read()
    result = process_encoded_frame(data, options)
    _print_frame(result, title=str(args.path))
    return 0


def _run_video(args: argparse.Namespace, options: ProcessorOptions) -> int:
    results: List[VideoFrameResult] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Processing {args.path}", total=args.max_frames)
        results = process_video(
            args.path,
            options,
            max_frames=args.max_frames,
            on_frame=lambda _: progress.advance(task),
            on_open=lambda total: progress.update(task, total=total)
        )

    table = Table(title=str(args.path))
    table.add_column("Frame", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Ambiguous", justify="right")
    table.add_column("Max height (mm)", justify="right")
    table.add_column("Error")

    for frame in results:
        if frame.ok:
            measured = [h for h in frame.result.heights.values() if not is_ambiguous(h)]
            max_height = f"{max(measured):.3f}" if measured else "-"
            table.add_row(
                str(frame.frame_index),
                str(len(frame.result.heights)),
                str(len(frame.result.ambiguous_rows)),
                max_height,
                ""
            )
        else:
            table.add_row(str(frame.frame_index), "-", "-", "-", f"[red]{escape(str(frame.error))}[/red]")

    console.print(table)
    return 0 if all(frame.ok for frame in results) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="laser-height",
        description="Measure surface height per row from laser line images."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("path", help="Image or video file")
    common.add_argument("--config", help="YAML file with processor options")
    common.add_argument("--pixel-per-mm", dest="pixel_per_mm", type=float, help="Override calibration.pixel_per_mm")
    common.add_argument("--debug-image", dest="debug_image", help="Write the deviation debug image to this path")
    common.add_argument("--strict", action="store_true", help="Fail on rows without 1 or 2 laser lines")
    common.add_argument("--workers", type=int, help="Threads used for row processing")
    common.add_argument("--log-level", dest="log_level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers.add_parser("image", parents=[common], help="Measure a single image")
    video_parser = subparsers.add_parser("video", parents=[common], help="Measure every frame of a video")
    video_parser.add_argument("--max-frames", dest="max_frames", type=int, help="Stop after this many frames")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        options = _apply_overrides(load_processor_options(args.config), args)
        if args.command == "image":
            return _run_image(args, options)
        return _run_video(args, options)
    except (LaserHeightError, FileNotFoundError) as e:
        logger.debug("Measurement failed", exc_info=True)
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
