#!/usr/bin/env python
"""
Command-line interface for Board Capture OCR.

Usage:
    boardcap --input <image_or_folder> --output <output_dir> [options]

Examples:
    # Capture a single board photo
    boardcap --input board.jpg --output ./notes --format all

    # Keep the enhanced image next to the text output
    boardcap --input board.jpg --output ./notes --save-enhanced

    # Process a folder of captures with EasyOCR
    boardcap --input ./photos --output ./notes --ocr-engine easyocr
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time
from typing import List

from boardcap import __version__

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("boardcap")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Board Capture OCR - Turn board photos into structured notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Capture a board photo and export all formats:
    boardcap --input board.jpg --output ./notes --format all

  Skip enhancement and recognize the raw photo:
    boardcap --input board.jpg --output ./notes --no-preprocessing

  Process every image in a folder:
    boardcap --input ./photos --output ./notes
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file or folder of images"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["json", "markdown"],
        choices=["json", "markdown", "text", "all"],
        help="Output format(s) (default: json markdown)"
    )

    parser.add_argument(
        "--ocr-engine",
        choices=["tesseract", "easyocr"],
        default=None,
        help="OCR engine (default: tesseract, or BOARDCAP_OCR_ENGINE)"
    )

    parser.add_argument(
        "--language",
        default=None,
        help="Recognition language code (default: eng)"
    )

    parser.add_argument(
        "--no-preprocessing",
        action="store_true",
        help="Disable image enhancement (detect, enhance, rectify, denoise)"
    )

    parser.add_argument(
        "--bounding-crop-only",
        action="store_true",
        help="Crop to the board's bounding rectangle without perspective correction"
    )

    parser.add_argument(
        "--save-enhanced",
        action="store_true",
        help="Also write the enhanced image as <name>_enhanced.png"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output and save per-stage debug images"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def check_dependencies(ocr_engine: str = "tesseract") -> bool:
    """Check if required dependencies are available."""
    missing = []

    try:
        import cv2
    except ImportError:
        missing.append("opencv-python")

    try:
        import numpy
    except ImportError:
        missing.append("numpy")

    if ocr_engine == "tesseract":
        try:
            import pytesseract
            # Test if tesseract is actually installed
            try:
                pytesseract.get_tesseract_version()
            except Exception:
                missing.append("tesseract-ocr (system package)")
        except ImportError:
            missing.append("pytesseract")
    elif ocr_engine == "easyocr":
        try:
            import easyocr
        except ImportError:
            missing.append("easyocr")

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        logger.error("\nInstall with: pip install boardcap")
        return False

    return True


def build_config(args):
    """Apply command-line overrides to the environment-derived config."""
    from boardcap.config import get_config

    config = get_config()
    if args.ocr_engine:
        config.ocr.primary_engine = args.ocr_engine
    if args.language:
        config.ocr.language = args.language
    if args.no_preprocessing:
        config.preprocessing_enabled = False
    if args.bounding_crop_only:
        config.preserve_corners = False
    if args.verbose:
        config.debug_mode = True
    return config


def collect_inputs(input_path: Path) -> List[Path]:
    """Resolve the input argument to a list of image files."""
    from boardcap.utils.io import list_images

    if input_path.is_dir():
        return list_images(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")
    return [input_path]


def print_summary(capture, source: Path, output_dir: Path):
    metrics = capture.metrics
    pipeline = capture.pipeline

    print("\n" + "="*60)
    print("BOARD CAPTURE COMPLETE")
    print("="*60)
    print(f"Source: {source}")
    print(f"Output: {output_dir}")
    print(f"Stages applied: {', '.join(pipeline.applied_stage_names) or 'none'}")
    if pipeline.skipped_stage_names:
        print(f"Stages skipped: {', '.join(pipeline.skipped_stage_names)}")
    print(f"Processing time: {capture.processing_time_seconds:.2f}s")
    print()
    print("Metrics:")
    print(f"  Words: {metrics.word_count}")
    print(f"  Reading time: {metrics.reading_seconds:.0f}s")
    print(f"  Confidence: {metrics.overall_confidence:.2%}")
    print(f"  Lines: {metrics.line_count} "
          f"(high: {metrics.lines_high_confidence}, "
          f"low: {metrics.lines_low_confidence})")
    print(f"  Paragraphs: {metrics.paragraph_count}")
    print("="*60)


def run_pipeline(args) -> int:
    """Run the board capture flow over every input image."""
    from boardcap.utils.io import load_image, save_image, ensure_dir
    from boardcap.utils.assembler import BoardCaptureAssembler
    from boardcap.utils.export import DocumentExporter

    start_time = time.time()

    output_dir = ensure_dir(args.output)
    config = build_config(args)

    try:
        inputs = collect_inputs(Path(args.input))
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error(str(e))
        return 1

    if not inputs:
        logger.error("No images to process")
        return 1

    logger.info(f"Processing {len(inputs)} image(s)")

    assembler = BoardCaptureAssembler(config=config, output_dir=output_dir)
    failures = 0

    for image_path in inputs:
        try:
            image = load_image(image_path)
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Could not load {image_path}: {e}")
            failures += 1
            continue

        def report(fraction, name=image_path.name):
            logger.debug(f"{name}: {fraction:.0%}")

        capture = assembler.capture(image, progress=report, source_file=str(image_path))

        exporter = DocumentExporter(
            output_dir, image_path.stem,
            low_confidence_threshold=config.ocr.low_confidence_threshold
        )
        for fmt, path in exporter.export(capture, args.format).items():
            logger.info(f"Exported {fmt}: {path}")

        if args.save_enhanced:
            enhanced_path = save_image(
                capture.pipeline.enhanced_image,
                output_dir / f"{image_path.stem}_enhanced.png"
            )
            logger.info(f"Saved enhanced image: {enhanced_path}")

        if not args.quiet:
            print_summary(capture, image_path, output_dir)

    elapsed = time.time() - start_time
    logger.info(f"Done: {len(inputs) - failures}/{len(inputs)} image(s) in {elapsed:.2f}s")

    return 1 if failures else 0


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    from boardcap.config import get_config

    # Check dependencies
    engine = args.ocr_engine or get_config().ocr.primary_engine
    if not check_dependencies(engine):
        sys.exit(1)

    # Run pipeline
    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
