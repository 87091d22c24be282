"""
End-to-end integration tests for the board capture flow.
"""

import pytest
import numpy as np
import json
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakeRecognizer:
    """Recognizer returning canned fragments regardless of the image."""

    def __init__(self, fragments):
        self.fragments = fragments
        self.images = []

    def recognize(self, image, language="eng", min_text_height_fraction=0.01):
        self.images.append(image)
        return list(self.fragments)


class FixedDetector:
    def __init__(self, quad):
        self.quad = quad

    def detect(self, image, **limits):
        return self.quad


@pytest.fixture
def board_photo():
    """A whiteboard on a dark wall with a few lines of writing."""
    import cv2

    img = np.full((360, 480, 3), 50, dtype=np.uint8)
    cv2.rectangle(img, (60, 40), (420, 320), (230, 232, 228), -1)
    cv2.putText(img, "Retro", (90, 100), cv2.FONT_HERSHEY_SIMPLEX, 1.2, (20, 20, 20), 2)
    cv2.putText(img, "keep demos", (90, 140), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (20, 20, 150), 2)
    cv2.putText(img, "fix CI", (90, 250), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (20, 20, 20), 2)
    return img


@pytest.fixture
def board_fragments():
    from boardcap.utils.ocr_text import make_fragment

    return [
        make_fragment("demos", 0.82, (160, 118, 230, 142)),
        make_fragment("Retro", 0.93, (30, 80, 130, 112)),
        make_fragment("keep", 0.88, (30, 120, 100, 142)),
        make_fragment("fix", 0.55, (30, 210, 70, 232)),
        make_fragment("CI", 0.61, (80, 211, 110, 232)),
    ]


@pytest.fixture
def blank_board():
    from boardcap.utils.images import Image

    return Image(np.full((300, 400), 255, dtype=np.uint8))


@pytest.fixture
def temp_output_dir():
    """Create a temporary output directory."""
    with tempfile.TemporaryDirectory(prefix="boardcap_test_") as tmp_dir:
        yield Path(tmp_dir)


class TestEndToEnd:
    """End-to-end integration tests."""

    def test_full_capture(self, board_photo, board_fragments):
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.geometry import BoundingBox, Quadrilateral
        from boardcap.utils.images import Image

        recognizer = FakeRecognizer(board_fragments)
        assembler = BoardCaptureAssembler(
            detector=FixedDetector(Quadrilateral.from_box(BoundingBox(60, 40, 420, 320))),
            recognizer=recognizer
        )

        progress = []
        capture = assembler.capture(Image(board_photo), progress=progress.append)

        assert capture.capture_id
        assert progress[-1] == 1.0
        assert capture.pipeline.applied_stage_names == [
            "board_detection", "enhancement", "perspective_correction", "text_optimization",
        ]
        # Recognition runs on the enhanced image, not the original
        assert recognizer.images[0] is capture.pipeline.enhanced_image
        assert recognizer.images[0].is_grayscale

        assert capture.document.formatted_text == "Retro\nkeep demos\n\nfix CI"
        assert capture.metrics.word_count == 5
        assert capture.metrics.paragraph_count == 2
        assert capture.document.source.captured_at == capture.pipeline.timestamp

    def test_real_detector_on_photo(self, board_photo, board_fragments):
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.images import Image

        assembler = BoardCaptureAssembler(recognizer=FakeRecognizer(board_fragments))
        capture = assembler.capture(Image(board_photo))

        assert "board_detection" in capture.pipeline.applied_stage_names
        width, height = capture.pipeline.enhanced_image.size
        assert width < 480 and height < 360

    def test_preprocessing_disabled(self, board_photo, board_fragments):
        from boardcap.config import PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.images import Image

        image = Image(board_photo)
        recognizer = FakeRecognizer(board_fragments)
        assembler = BoardCaptureAssembler(
            config=PipelineConfig(preprocessing_enabled=False),
            recognizer=recognizer
        )

        capture = assembler.capture(image)

        assert capture.pipeline.stages_applied == []
        assert capture.pipeline.enhanced_image.same_pixels(image)
        assert recognizer.images[0].channels == 3

    def test_nothing_recognized(self, board_photo):
        """An empty recognition result gives an empty document, not an error."""
        from boardcap.config import PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.images import Image

        assembler = BoardCaptureAssembler(
            config=PipelineConfig(preprocessing_enabled=False),
            recognizer=FakeRecognizer([])
        )

        capture = assembler.capture(Image(board_photo))

        assert capture.document.is_empty
        assert capture.document.overall_confidence == 0.0
        assert capture.metrics.word_count == 0
        assert capture.metrics.paragraph_count == 0

    def test_structure_text_uses_config(self, board_fragments):
        from boardcap.config import LayoutConfig, PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler

        config = PipelineConfig(layout=LayoutConfig(paragraph_threshold=200.0))
        assembler = BoardCaptureAssembler(config=config, recognizer=FakeRecognizer([]))

        document = assembler.structure_text(board_fragments)

        assert len(document.paragraphs) == 1

    def test_recognize_uses_config_line_threshold(self, blank_board):
        """Reading order and line grouping use the same configured threshold."""
        from boardcap.config import LayoutConfig, PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.ocr_text import make_fragment

        recognizer = FakeRecognizer([
            make_fragment("right", 0.9, (200, 100, 260, 120)),
            make_fragment("left", 0.9, (10, 125, 60, 145)),
        ])
        assembler = BoardCaptureAssembler(
            config=PipelineConfig(layout=LayoutConfig(line_threshold=40.0)),
            recognizer=recognizer
        )

        document = assembler.recognize(blank_board)

        assert document.source.full_text == "left right"
        assert document.formatted_text == "left right"
        assert [f.text for f in document.source.fragments] == ["left", "right"]

    def test_debug_mode_saves_stage_images(self, board_photo, board_fragments, temp_output_dir):
        from boardcap.config import PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.geometry import BoundingBox, Quadrilateral
        from boardcap.utils.images import Image
        from boardcap.utils.io import load_image

        assembler = BoardCaptureAssembler(
            config=PipelineConfig(debug_mode=True),
            detector=FixedDetector(Quadrilateral.from_box(BoundingBox(60, 40, 420, 320))),
            recognizer=FakeRecognizer(board_fragments),
            output_dir=temp_output_dir
        )

        capture = assembler.capture(Image(board_photo), source_file="photos/monday.png")

        debug_dir = temp_output_dir / "debug"
        assert sorted(p.name for p in debug_dir.iterdir()) == [
            "monday_01_board_detection.png",
            "monday_02_enhancement.png",
            "monday_03_perspective_correction.png",
            "monday_04_text_optimization.png",
        ]
        final = load_image(debug_dir / "monday_04_text_optimization.png")
        assert final.size == capture.pipeline.enhanced_image.size

    def test_no_debug_images_by_default(self, board_photo, board_fragments, temp_output_dir):
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.images import Image

        assembler = BoardCaptureAssembler(
            recognizer=FakeRecognizer(board_fragments),
            output_dir=temp_output_dir
        )
        assembler.capture(Image(board_photo), source_file="monday.png")

        assert not (temp_output_dir / "debug").exists()


class TestExport:
    """Test writing capture results to disk."""

    @pytest.fixture
    def capture(self, board_photo, board_fragments):
        from boardcap.config import PipelineConfig
        from boardcap.utils.assembler import BoardCaptureAssembler
        from boardcap.utils.images import Image

        assembler = BoardCaptureAssembler(
            config=PipelineConfig(preprocessing_enabled=False),
            recognizer=FakeRecognizer(board_fragments)
        )
        return assembler.capture(Image(board_photo), source_file="board.png")

    def test_json_output_format(self, capture, temp_output_dir):
        """Test that JSON output is well-formed."""
        from boardcap.utils.export import DocumentExporter
        from boardcap.utils.io import load_json

        paths = DocumentExporter(temp_output_dir, "board").export(capture, ["json"])
        loaded = load_json(paths["json"])

        assert paths["json"].name == "board.json"
        assert loaded["capture_id"] == capture.capture_id
        assert loaded["source_file"] == "board.png"
        assert loaded["document"]["formatted_text"] == capture.document.formatted_text
        assert loaded["metrics"]["word_count"] == 5
        assert "stages" in loaded["pipeline"]

    def test_markdown_output(self, capture, temp_output_dir):
        from boardcap.utils.export import DocumentExporter

        paths = DocumentExporter(temp_output_dir, "board").export(capture, ["markdown"])
        markdown = paths["markdown"].read_text(encoding="utf-8")

        assert markdown.startswith("# Board Notes")
        assert "Retro  \nkeep demos" in markdown
        assert "low confidence" in markdown
        assert "- Words: 5" in markdown

    def test_markdown_flag_threshold(self, capture, temp_output_dir):
        from boardcap.utils.export import DocumentExporter

        lenient = DocumentExporter(temp_output_dir, "lenient", low_confidence_threshold=0.5)
        strict = DocumentExporter(temp_output_dir, "strict", low_confidence_threshold=0.95)

        lenient_md = lenient.export(capture, ["markdown"])["markdown"].read_text(encoding="utf-8")
        strict_md = strict.export(capture, ["markdown"])["markdown"].read_text(encoding="utf-8")

        assert "low confidence" not in lenient_md
        assert strict_md.count("low confidence") == 2

    def test_all_formats(self, capture, temp_output_dir):
        from boardcap.utils.export import DocumentExporter

        paths = DocumentExporter(temp_output_dir, "board").export(capture, ["all"])

        assert set(paths) == {"json", "markdown", "text"}
        text = paths["text"].read_text(encoding="utf-8")
        assert text == "Retro\nkeep demos\n\nfix CI\n"

    def test_empty_document_markdown(self):
        from boardcap.utils.export import MarkdownExporter
        from boardcap.utils.layout import empty_document

        markdown = MarkdownExporter().render(empty_document())

        assert "_No text recognized._" in markdown

    def test_enhanced_image_roundtrip(self, capture, temp_output_dir):
        from boardcap.utils.io import load_image, save_image

        path = save_image(capture.pipeline.enhanced_image, temp_output_dir / "board_enhanced.png")
        loaded = load_image(path)

        assert loaded.same_pixels(capture.pipeline.enhanced_image)

    def test_missing_image(self, temp_output_dir):
        from boardcap.utils.io import load_image

        with pytest.raises(FileNotFoundError):
            load_image(temp_output_dir / "missing.png")


class TestCli:
    """Test the command-line entry point."""

    def test_argparser_defaults(self):
        from boardcap.cli import setup_argparser

        args = setup_argparser().parse_args(["--input", "board.jpg", "--output", "out"])

        assert args.format == ["json", "markdown"]
        assert not args.bounding_crop_only
        assert args.ocr_engine is None

    def test_build_config_overrides(self, monkeypatch):
        from boardcap.cli import build_config, setup_argparser

        monkeypatch.delenv("BOARDCAP_PRESERVE_CORNERS", raising=False)
        args = setup_argparser().parse_args([
            "-i", "board.jpg", "-o", "out",
            "--bounding-crop-only", "--no-preprocessing", "--language", "spa",
        ])

        config = build_config(args)

        assert not config.preserve_corners
        assert not config.preprocessing_enabled
        assert config.ocr.language == "spa"

    def test_run_pipeline_on_folder(self, board_photo, board_fragments, temp_output_dir, monkeypatch):
        import cv2
        from boardcap import cli
        from boardcap.utils import assembler

        input_dir = temp_output_dir / "photos"
        input_dir.mkdir()
        cv2.imwrite(str(input_dir / "monday.png"), board_photo)
        (input_dir / "notes.txt").write_text("not an image")

        original_init = assembler.BoardCaptureAssembler.__init__

        def init_with_fake(self, config=None, **kwargs):
            kwargs["recognizer"] = FakeRecognizer(board_fragments)
            original_init(self, config=config, **kwargs)

        monkeypatch.setattr(assembler.BoardCaptureAssembler, "__init__", init_with_fake)

        out_dir = temp_output_dir / "out"
        args = cli.setup_argparser().parse_args([
            "-i", str(input_dir), "-o", str(out_dir), "-f", "all", "--save-enhanced", "-q",
        ])

        assert cli.run_pipeline(args) == 0
        assert (out_dir / "monday.json").exists()
        assert (out_dir / "monday.md").exists()
        assert (out_dir / "monday.txt").exists()
        assert (out_dir / "monday_enhanced.png").exists()
        assert json.loads((out_dir / "monday.json").read_text())["metrics"]["word_count"] == 5

    def test_run_pipeline_missing_input(self, temp_output_dir):
        from boardcap import cli

        args = cli.setup_argparser().parse_args([
            "-i", str(temp_output_dir / "nope.jpg"), "-o", str(temp_output_dir / "out"),
        ])

        assert cli.run_pipeline(args) == 1
