#!/usr/bin/env python3
"""
compress_pdf.py - Adaptive PDF compression CLI.

PHILOSOPHY: Rasterize every page, pick resolution from text density,
never hand back a bigger file.

Usage:
    python compress_pdf.py input.pdf -o output.pdf
    python compress_pdf.py input.pdf --level extreme --override-safety
    python compress_pdf.py input.pdf --slider 65
    python compress_pdf.py input.pdf --estimate
    python compress_pdf.py *.pdf --output-dir ./compressed/
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent to path when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from pdf_compressor import (
    CompressionLevel,
    SourceDocument,
    analyze_content,
    estimate_target_size,
    preview_pair,
    readability_label,
    resolve_config,
)
from pdf_compressor.errors import CompressionError
from pdf_compressor.pipeline import compress_file

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Adaptive, size-targeted PDF compression by page rasterization.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python compress_pdf.py scan.pdf -o compressed.pdf
  python compress_pdf.py scan.pdf --level less
  python compress_pdf.py scan.pdf --slider 40 --override-safety
  python compress_pdf.py *.pdf --output-dir ./out/

The output PDF will be:
  - Fully rasterized (no vectors, fonts, layers)
  - JPEG per page, drawn at the original page size
  - Never larger than the input (the original is kept instead)
"""
    )

    parser.add_argument(
        "input",
        nargs="+",
        type=Path,
        help="Input PDF file(s)"
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file (single input only)"
    )
    output.add_argument(
        "--output-dir",
        type=Path,
        help="Output directory (for multiple files)"
    )

    tuning = parser.add_mutually_exclusive_group()
    tuning.add_argument(
        "-l", "--level",
        choices=[level.value for level in CompressionLevel],
        default=CompressionLevel.RECOMMENDED.value,
        help="Compression preset (default: recommended)"
    )
    tuning.add_argument(
        "-s", "--slider",
        type=float,
        help="Custom quality 0-100 instead of a preset (no adaptive fallback)"
    )

    parser.add_argument(
        "--override-safety",
        action="store_true",
        help="Allow configs below the legibility DPI floor"
    )

    parser.add_argument(
        "-e", "--estimate",
        action="store_true",
        help="Only print size estimates, do not compress"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser.parse_args(argv)


def print_progress(percent: int):
    """Print progress bar."""
    width = 40
    filled = int(width * percent / 100)
    bar = "=" * filled + "-" * (width - filled)
    print(f"\r[{bar}] {percent:3d}%", end="", file=sys.stderr)
    if percent >= 100:
        print(file=sys.stderr)


def print_estimate(input_path: Path, level: str, slider=None):
    """Print the table-driven target and the page-1 preview estimate."""
    with SourceDocument.from_path(input_path) as doc:
        profile = analyze_content(doc)
        config = resolve_config(slider if slider is not None else level, profile.is_text_heavy)
        pair = asyncio.run(preview_pair(doc, config))

        print(f"{input_path.name}: {doc.original_size:,} bytes, {doc.page_count} pages")
        print(f"  Text-heavy: {profile.is_text_heavy}")
        print(
            f"  Config: scale={config.scale:.2f} quality={config.quality:.2f} "
            f"{config.projected_dpi} DPI ({readability_label(config.projected_dpi)})"
        )
        if slider is None:
            target = estimate_target_size(doc.original_size, level, profile.is_text_heavy)
            print(f"  Target size: {target:,} bytes")
        print(f"  Preview estimate: {pair.metrics.estimated_total_size:,} bytes")


def compress_one(input_path: Path, output_path: Path, args):
    custom_config = None
    if args.slider is not None:
        is_text_heavy = False
        try:
            with SourceDocument.from_path(input_path) as doc:
                is_text_heavy = analyze_content(doc).is_text_heavy
        except CompressionError as e:
            logger.debug(f"Content analysis skipped for {input_path.name}: {e}")
        custom_config = resolve_config(args.slider, is_text_heavy)

    return compress_file(
        input_path,
        output_path,
        level=args.level,
        on_progress=print_progress,
        override_safety=args.override_safety,
        custom_config=custom_config
    )


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    # Validate inputs
    valid_inputs = []
    for p in args.input:
        if not p.exists():
            print(f"Error: File not found: {p}", file=sys.stderr)
            continue
        if p.suffix.lower() != ".pdf":
            print(f"Warning: Skipping non-PDF: {p}", file=sys.stderr)
            continue
        valid_inputs.append(p)

    if not valid_inputs:
        print("Error: No valid PDF files", file=sys.stderr)
        sys.exit(1)

    if args.estimate:
        failures = 0
        for input_path in valid_inputs:
            try:
                print_estimate(input_path, args.level, args.slider)
            except CompressionError as e:
                print(f"Error: {input_path.name}: {e}", file=sys.stderr)
                failures += 1
        sys.exit(1 if failures else 0)

    # Determine output
    if len(valid_inputs) > 1:
        if args.output:
            print("Error: Use --output-dir for multiple files", file=sys.stderr)
            sys.exit(1)
        if not args.output_dir:
            args.output_dir = Path(".")

    # Process single file
    if len(valid_inputs) == 1:
        input_path = valid_inputs[0]
        if args.output:
            output_path = args.output
        elif args.output_dir:
            args.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = args.output_dir / f"{input_path.stem}_compressed.pdf"
        else:
            output_path = input_path.with_stem(input_path.stem + "_compressed")

        result = compress_one(input_path, output_path, args)

        print(f"\n{result.summary()}")
        sys.exit(0 if result.ok else 1)
    else:
        # Batch processing
        args.output_dir.mkdir(parents=True, exist_ok=True)

        total_in = 0
        total_out = 0
        successes = 0

        for i, input_path in enumerate(valid_inputs):
            output_path = args.output_dir / f"{input_path.stem}_compressed.pdf"
            print(f"\n[{i+1}/{len(valid_inputs)}] {input_path.name}")

            result = compress_one(input_path, output_path, args)
            print(result.summary())

            total_in += result.meta.original_size
            if result.ok:
                total_out += result.meta.compressed_size
                successes += 1

        print(f"\n{'='*50}")
        print(f"Batch complete: {successes}/{len(valid_inputs)} files")
        print(f"Total: {total_in:,} -> {total_out:,} bytes")
        if total_in > 0:
            print(f"Reduction: {(1 - total_out/total_in)*100:.1f}%")

        sys.exit(0 if successes == len(valid_inputs) else 1)


if __name__ == "__main__":
    main()
