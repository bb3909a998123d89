"""Unit tests for text extraction."""
from pathlib import Path

import pytest

from docchat.errors import ExtractionFailed
from docchat.extract import extract_text, parse_frontmatter


class TestParseFrontmatter:
    def test_splits_yaml_frontmatter(self):
        frontmatter, body = parse_frontmatter("---\ntitle: Plan\ntags: [a, b]\n---\nBody text\n")

        assert frontmatter == {"title": "Plan", "tags": ["a", "b"]}
        assert body == "Body text\n"

    def test_no_frontmatter(self):
        assert parse_frontmatter("# Title\ntext") == ({}, "# Title\ntext")

    def test_invalid_yaml_is_ignored(self):
        frontmatter, body = parse_frontmatter("---\n: : [unclosed\n---\nBody\n")

        assert frontmatter == {}
        assert body == "Body\n"


class TestExtractText:
    def test_plain_text_bytes(self):
        extracted = extract_text(b"hello world", filename="a.txt")

        assert extracted.text == "hello world"
        assert extracted.page_count == 1

    def test_markdown_file(self, tmp_path: Path):
        path = tmp_path / "notes.md"
        path.write_text("---\nauthor: Sam\n---\nNotes body", encoding="utf-8")

        extracted = extract_text(path)

        assert extracted.text == "Notes body"
        assert extracted.metadata == {"author": "Sam"}

    def test_unsupported_type(self):
        with pytest.raises(ExtractionFailed) as exc_info:
            extract_text(b"data", filename="sheet.xlsx")

        assert exc_info.value.filename == "sheet.xlsx"

    def test_invalid_utf8(self):
        with pytest.raises(ExtractionFailed):
            extract_text(b"\xff\xfe\xfa", filename="a.txt")

    def test_malformed_pdf(self):
        with pytest.raises(ExtractionFailed):
            extract_text(b"%PDF-1.4 not really a pdf", filename="broken.pdf")

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ExtractionFailed):
            extract_text(tmp_path / "missing.txt")

    def test_bytes_require_filename(self):
        with pytest.raises(ExtractionFailed):
            extract_text(b"data")
