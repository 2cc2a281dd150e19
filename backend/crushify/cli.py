"""Command line entry point: convert a file or a folder to one output format."""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from crushify.conversion import formats
from crushify.conversion.errors import ConversionError
from crushify.conversion.models import FolderProgress, ProcessingOptions
from crushify.conversion.service import ImageConverter

logger = logging.getLogger("crushify.cli")

MAX_QUALITY = 100
MAX_EFFORT = 6
MAX_COMPRESSION = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crushify", description="Convert images between raster formats.")
    parser.add_argument("format", type=str.lower, choices=sorted(set(formats.supported_formats()) | {"jpg"}))
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=Path, help="Image file to convert")
    source.add_argument("--folder", type=Path, help="Convert every supported image in this folder")
    parser.add_argument("--dest", type=Path, help="Destination folder (defaults to the source's folder)")
    parser.add_argument("--quality", type=int, help="Quality for lossy formats (1-100)")
    parser.add_argument("--level", type=int, help="Compression effort (0-6)")
    parser.add_argument("--pnglevel", type=int, help="PNG compression level (0-10)")
    parser.add_argument("--lossless", action="store_true", help="Use lossless compression when available")
    parser.add_argument("--remove", action="store_true", help="Delete each original after a successful conversion")
    parser.add_argument("--workers", type=int, help="Convert folder files in parallel with this many workers")
    return parser


def options_from_args(args: argparse.Namespace) -> ProcessingOptions:
    """Out-of-range values are clamped rather than rejected."""
    def clamp(value: Optional[int], lo: int, hi: int) -> Optional[int]:
        return None if value is None else max(lo, min(value, hi))

    return ProcessingOptions(
        quality=clamp(args.quality, 1, MAX_QUALITY),
        effort=clamp(args.level, 0, MAX_EFFORT),
        compression_level=clamp(args.pnglevel, 0, MAX_COMPRESSION),
        lossless=True if args.lossless else None,
        delete_original=True if args.remove else None,
    )


def _print_progress(update: FolderProgress) -> None:
    print(f"Processing {update.file}: {update.progress:.1f}%\n{update.result.message}")


def run(argv: Optional[list[str]] = None, converter: Optional[ImageConverter] = None) -> int:
    args = build_parser().parse_args(argv)
    converter = converter or ImageConverter()
    options = options_from_args(args)
    try:
        if args.folder is not None:
            try:
                results = converter.convert_folder(
                    args.folder,
                    args.dest or args.folder,
                    args.format,
                    options,
                    _print_progress,
                    max_workers=args.workers,
                )
            except KeyboardInterrupt:
                print("Interrupted", file=sys.stderr)
                return 130
            stats = converter.statistics_snapshot()
            average = f"{stats.average_saving / 1024:.2f} KB" if stats.average_saving is not None else "n/a"
            elapsed = f"{stats.processing_time:.2f}s" if stats.processing_time is not None else "n/a"
            print(
                "Processing complete:\n"
                f"  - Files processed: {stats.processed}\n"
                f"  - Files skipped: {stats.skipped}\n"
                f"  - Failed: {stats.failed}\n"
                f"  - Total time: {elapsed}\n"
                f"  - Average saving: {average}"
            )
            return 1 if any(not r.success for r in results) else 0

        output = None
        if args.dest is not None:
            output = args.dest / f"{args.file.stem}{formats.output_extension(args.format)}"
        result = converter.convert_file(args.file, args.format, output, options)
        print(result.message)
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        return 0
    except (ConversionError, ValueError) as e:
        logger.debug("Conversion aborted", exc_info=True)
        print(f"Processing failed: {e}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
