from __future__ import annotations

"""PDF text extraction helpers."""

from dataclasses import dataclass, field
from pathlib import Path
import re
from typing import Iterable

import fitz

from ..errors import DocumentParseError


SUPPORTED_EXTENSIONS = {".pdf"}


@dataclass
class ParsedDocument:
    text: str
    page_count: int
    info: dict = field(default_factory=dict)


def parse_pdf(pdf_path: Path | str) -> ParsedDocument:
    """Return the normalized text, page count and metadata of a PDF on disk."""
    path = Path(pdf_path)
    if not path.exists():
        raise FileNotFoundError(f"PDF not found: {path}")

    try:
        doc = fitz.open(path)
    except Exception as exc:
        raise DocumentParseError(f"PDF parsing failed: {exc}") from exc

    try:
        parts: list[str] = []
        for page_index in range(doc.page_count):
            page_text = doc.load_page(page_index).get_text("text").strip()
            if page_text:
                parts.append(page_text)
        info = {key: value for key, value in (doc.metadata or {}).items() if value}
        return ParsedDocument(text=_normalize_text(parts), page_count=doc.page_count, info=info)
    except Exception as exc:
        raise DocumentParseError(f"PDF parsing failed: {exc}") from exc
    finally:
        doc.close()


def extract_text_from_pdf(pdf_path: Path | str) -> str:
    return parse_pdf(pdf_path).text


def _normalize_text(chunks: Iterable[str]) -> str:
    combined = "\n\n".join(chunks)
    combined = combined.replace("\r\n", "\n").replace("\r", "\n")
    combined = re.sub(r"[ \t]+\n", "\n", combined)
    combined = re.sub(r"\n{3,}", "\n\n", combined)
    return combined.strip()
