"""
Tests for command-line parsing and the end-to-end capture run.
"""
import io

import pytest
from PIL import Image

from cli_handler import CLIHandler
from main import main


class TestParseRegion:
    def test_valid(self):
        assert CLIHandler.parse_region("10, 20,30,40") == (10.0, 20.0, 30.0, 40.0)

    def test_negative_extent_is_allowed(self):
        assert CLIHandler.parse_region("60,60,-50,-40") == (60.0, 60.0, -50.0, -40.0)

    @pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d", "1,2,3,4,5", "1,2,inf,4"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            CLIHandler.parse_region(value)


class TestValidateArguments:
    def test_requires_region(self, png_path):
        args = CLIHandler.parse_arguments([str(png_path)])
        with pytest.raises(ValueError, match="region"):
            CLIHandler.validate_arguments(args)

    def test_missing_file(self, tmp_path):
        args = CLIHandler.parse_arguments([str(tmp_path / "nope.pdf"), "--region", "0,0,20,20"])
        with pytest.raises(ValueError, match="not found"):
            CLIHandler.validate_arguments(args)

    def test_rejects_other_file_types(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        args = CLIHandler.parse_arguments([str(path), "--region", "0,0,20,20"])
        with pytest.raises(ValueError, match="PDF or image"):
            CLIHandler.validate_arguments(args)

    def test_save_json_requires_analyze(self, png_path):
        args = CLIHandler.parse_arguments([str(png_path), "--region", "0,0,20,20", "--save-json"])
        with pytest.raises(ValueError, match="--analyze"):
            CLIHandler.validate_arguments(args)

    def test_returns_regions(self, pdf_path):
        args = CLIHandler.parse_arguments(
            [str(pdf_path), "--region", "0,0,20,20", "--region", "5,50,30,30"]
        )
        assert CLIHandler.validate_arguments(args) == [(0, 0, 20, 20), (5, 50, 30, 30)]


class TestMain:
    def test_writes_composite(self, png_path, tmp_path):
        output = tmp_path / "out.png"
        preview = tmp_path / "preview.png"
        main([
            str(png_path),
            "--container-width", "464",
            "--region", "10,100,150,60",
            "--region", "10,10,100,40",
            "--output", str(output),
            "--save-preview", str(preview),
        ])

        composite = Image.open(io.BytesIO(output.read_bytes()))
        assert composite.size == (150, 110)
        assert Image.open(preview).size == (400, 300)

    def test_default_output_name(self, pdf_path):
        main([str(pdf_path), "--page", "2", "--container-width", "264", "--region", "20,20,80,40"])
        assert (pdf_path.parent / "sample_composite.png").exists()

    def test_filter_overlapping(self, png_path, tmp_path):
        output = tmp_path / "out.png"
        main([
            str(png_path),
            "--container-width", "464",
            "--region", "10,10,100,40",
            "--region", "20,15,50,20",
            "--filter-overlapping",
            "--output", str(output),
        ])
        assert Image.open(output).size == (100, 40)

    def test_invalid_arguments_exit(self, png_path):
        with pytest.raises(SystemExit) as excinfo:
            main([str(png_path)])
        assert excinfo.value.code == 1

    def test_bad_page_exits(self, pdf_path):
        with pytest.raises(SystemExit) as excinfo:
            main([str(pdf_path), "--page", "9", "--region", "0,0,20,20"])
        assert excinfo.value.code == 1
