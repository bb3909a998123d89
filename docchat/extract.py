"""Text extraction from uploaded files.

Handles:
- PDF text extraction page by page (pdfplumber)
- Markdown with optional YAML frontmatter
- Plain text
"""
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import pdfplumber
import structlog
import yaml

from docchat.errors import ExtractionFailed

logger = structlog.get_logger()

# pdfminer is noisy about missing font metadata
logging.getLogger("pdfminer").setLevel(logging.ERROR)

# Regex for YAML frontmatter (must be at start of file)
FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)

PDF_SUFFIXES = {".pdf"}
MARKDOWN_SUFFIXES = {".md", ".markdown"}
TEXT_SUFFIXES = {".txt", ".text"}
SUPPORTED_SUFFIXES = PDF_SUFFIXES | MARKDOWN_SUFFIXES | TEXT_SUFFIXES


@dataclass
class ExtractedText:
    """Plain text pulled out of a source file."""

    text: str
    page_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)


def _extract_pdf(data: bytes, filename: str) -> ExtractedText:
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = []
            for page in pdf.pages:
                # Join words with spaces and pages with newlines
                page_text = page.extract_text() or ""
                pages.append(" ".join(page_text.split("\n")))
            page_count = len(pdf.pages)
    except Exception as e:
        raise ExtractionFailed(filename, str(e) or type(e).__name__) from e

    return ExtractedText(
        text="".join(page + "\n" for page in pages), page_count=page_count
    )


def parse_frontmatter(content: str) -> tuple:
    """Split YAML frontmatter from markdown content.

    Args:
        content: Full markdown content

    Returns:
        Tuple of (frontmatter_dict, content_without_frontmatter)
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content

    yaml_content = match.group(1)
    try:
        frontmatter = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        logger.warning(
            "frontmatter_parse_error",
            error=str(e),
            yaml_preview=yaml_content[:100],
        )
        frontmatter = None

    if not isinstance(frontmatter, dict):
        frontmatter = {}

    return frontmatter, content[match.end() :]


def _decode(data: bytes, filename: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionFailed(filename, f"not valid UTF-8 text ({e.reason})") from e


def extract_text(source: Union[Path, bytes], filename: str = None) -> ExtractedText:
    """Extract plain text and a page count from a file.

    Args:
        source: Path to the file, or its raw bytes
        filename: Name used to pick the format (defaults to the path name)

    Returns:
        ExtractedText with text and page count

    Raises:
        ExtractionFailed: If the file is unreadable, malformed or unsupported
    """
    if isinstance(source, Path):
        filename = filename or source.name
        try:
            data = source.read_bytes()
        except OSError as e:
            raise ExtractionFailed(filename, str(e)) from e
    else:
        data = source
        if not filename:
            raise ExtractionFailed("<upload>", "filename is required for raw bytes")

    suffix = Path(filename).suffix.lower()

    if suffix in PDF_SUFFIXES:
        extracted = _extract_pdf(data, filename)
    elif suffix in MARKDOWN_SUFFIXES:
        frontmatter, body = parse_frontmatter(_decode(data, filename))
        extracted = ExtractedText(text=body, page_count=1, metadata=frontmatter)
    elif suffix in TEXT_SUFFIXES:
        extracted = ExtractedText(text=_decode(data, filename), page_count=1)
    else:
        raise ExtractionFailed(filename, f"unsupported file type '{suffix or '?'}'")

    logger.info(
        "text_extracted",
        filename=filename,
        page_count=extracted.page_count,
        text_length=len(extracted.text),
    )

    return extracted
